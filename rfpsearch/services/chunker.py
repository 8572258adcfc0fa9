"""Heading- and Q&A-aware chunking with overlapping word windows.

Splits normalized RFP text into :class:`~rfpsearch.models.chunk.TextChunk`
objects sized for the embedding model (default 500 words, 50-word overlap).

The strategy has two passes:

1. **Segmentation** -- lines are grouped into segments.  A numbered heading
   (``2.1 Scope of Work``) or a ``Question:`` / ``Answer:`` marker starts a
   new segment, and a blank line ends the current one, so every paragraph
   under a heading becomes its own segment.  RFP questionnaires keep each
   question and answer separately retrievable this way.

2. **Size policy** -- a segment of at most ``max_tokens`` words is kept
   whole, however short (short Q&A pairs matter and are never merged with
   neighbours).  A longer segment is cut into windows of ``max_tokens``
   words, each window starting ``max_tokens - overlap`` words after the
   previous one, so consecutive windows share exactly ``overlap`` words.

Token counts are whitespace-delimited word counts, not model tokens.

Offsets are computed by index arithmetic on the source text, never by
searching for the chunk text, so ``text[c.char_start:c.char_end] == c.text``
holds for every chunk even when the same passage repeats in a document.
"""

from __future__ import annotations

import re

import structlog

from rfpsearch.models.chunk import ChunkMetadata, TextChunk
from rfpsearch.utils.errors import InvalidInputError

logger = structlog.get_logger(logger_name=__name__)

_HEADING = re.compile(r"^[0-9]+(?:\.[0-9]+)*\s+")
_QA_MARKER = re.compile(r"^(?:Question:|Answer:)", re.IGNORECASE)
_SECTION_HEADING = re.compile(r"^([0-9]+(?:\.[0-9]+)*)\s+(.+)")
_QUESTION = re.compile(r"^Question:", re.IGNORECASE)
_ANSWER = re.compile(r"^Answer:", re.IGNORECASE)
_WORD = re.compile(r"\S+")

# Segments below this many words are still emitted unchanged.
MIN_SEGMENT_TOKENS = 50

DEFAULT_MAX_TOKENS = 500
DEFAULT_OVERLAP = 50


def count_tokens(text: str) -> int:
    """Return the whitespace-delimited word count of *text*."""
    return sum(1 for _ in _WORD.finditer(text))


def derive_metadata(chunk_text: str) -> ChunkMetadata:
    """Tag a chunk from its first line: section heading, question, answer."""
    first_line = chunk_text.split("\n", 1)[0].strip()

    section: str | None = None
    heading = _SECTION_HEADING.match(first_line)
    if heading:
        section = f"{heading.group(1)} {heading.group(2)}"

    return ChunkMetadata(
        section=section,
        is_question=bool(_QUESTION.match(first_line)),
        is_answer=bool(_ANSWER.match(first_line)),
    )


class SegmentChunker:
    """Splits normalized text into segment-aligned, overlapping chunks.

    Parameters
    ----------
    max_tokens:
        Maximum words per chunk (default 500).
    overlap:
        Words shared by consecutive windows of an oversized segment
        (default 50).  Must be smaller than *max_tokens*.
    """

    def __init__(self, max_tokens: int = DEFAULT_MAX_TOKENS, overlap: int = DEFAULT_OVERLAP) -> None:
        self._validate_window(max_tokens, overlap)
        self._max_tokens = max_tokens
        self._overlap = overlap

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        text: str,
        max_tokens: int | None = None,
        overlap: int | None = None,
    ) -> list[TextChunk]:
        """Split *text* into chunks in source order.

        Parameters
        ----------
        text:
            Normalized document text.
        max_tokens, overlap:
            Per-call overrides of the instance defaults.

        Returns
        -------
        list[TextChunk]
            Chunks in source order; the caller assigns ``chunk_index`` as the
            position in this list.  Blank input yields an empty list.
        """
        if not isinstance(text, str):
            raise InvalidInputError(
                message=f"chunk expects a string, got {type(text).__name__}"
            )
        max_tokens = self._max_tokens if max_tokens is None else max_tokens
        overlap = self._overlap if overlap is None else overlap
        self._validate_window(max_tokens, overlap)

        chunks: list[TextChunk] = []
        short_segments = 0
        segments = self.split_segments(text)
        for seg_start, seg_end in segments:
            token_count = count_tokens(text[seg_start:seg_end])
            if token_count < MIN_SEGMENT_TOKENS:
                short_segments += 1
            if token_count <= max_tokens:
                chunks.append(self._make_chunk(text, seg_start, seg_end, token_count))
            else:
                chunks.extend(self._split_with_overlap(text, seg_start, seg_end, max_tokens, overlap))

        logger.debug(
            "chunking_complete",
            num_segments=len(segments),
            num_chunks=len(chunks),
            short_segments=short_segments,
            avg_tokens=self._avg_tokens(chunks),
        )
        return chunks

    def split_segments(self, text: str) -> list[tuple[int, int]]:
        """Return ``(start, end)`` offsets of each segment, whitespace-trimmed.

        A segment is a run of non-blank lines; a heading or Q/A marker line
        closes the run before it and opens a new one.
        """
        spans: list[tuple[int, int]] = []
        seg_start: int | None = None
        seg_end = 0

        def close() -> None:
            nonlocal seg_start
            if seg_start is not None:
                span = self._trim_span(text, seg_start, seg_end)
                if span is not None:
                    spans.append(span)
            seg_start = None

        pos = 0
        for line in text.split("\n"):
            line_start = pos
            line_end = pos + len(line)
            pos = line_end + 1

            if not line.strip():
                close()
                continue
            if _HEADING.match(line) or _QA_MARKER.match(line):
                close()
            if seg_start is None:
                seg_start = line_start
            seg_end = line_end

        close()
        return spans

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _split_with_overlap(
        self,
        text: str,
        seg_start: int,
        seg_end: int,
        max_tokens: int,
        overlap: int,
    ) -> list[TextChunk]:
        """Cut one oversized segment into overlapping word windows."""
        words = [(m.start(), m.end()) for m in _WORD.finditer(text, seg_start, seg_end)]
        windows: list[TextChunk] = []

        start = 0
        while start < len(words):
            end = min(start + max_tokens, len(words))
            windows.append(
                self._make_chunk(text, words[start][0], words[end - 1][1], end - start)
            )
            if end == len(words):
                break
            start = end - overlap

        return windows

    @staticmethod
    def _make_chunk(text: str, start: int, end: int, token_count: int) -> TextChunk:
        chunk_text = text[start:end]
        return TextChunk(
            text=chunk_text,
            token_count=token_count,
            char_start=start,
            char_end=end,
            metadata=derive_metadata(chunk_text),
        )

    @staticmethod
    def _trim_span(text: str, start: int, end: int) -> tuple[int, int] | None:
        piece = text[start:end]
        stripped = piece.strip()
        if not stripped:
            return None
        lead = len(piece) - len(piece.lstrip())
        return start + lead, start + lead + len(stripped)

    @staticmethod
    def _validate_window(max_tokens: int, overlap: int) -> None:
        if max_tokens <= 0:
            raise InvalidInputError(message=f"max_tokens must be positive, got {max_tokens}")
        if overlap < 0 or overlap >= max_tokens:
            raise InvalidInputError(
                message=f"overlap must be in [0, max_tokens), got {overlap} with max_tokens={max_tokens}"
            )

    @staticmethod
    def _avg_tokens(chunks: list[TextChunk]) -> int:
        if not chunks:
            return 0
        return sum(c.token_count for c in chunks) // len(chunks)
