"""Unit tests for the SegmentChunker -- heading/Q&A-aware overlapping chunking."""

from __future__ import annotations

import pytest

from rfpsearch.services.chunker import SegmentChunker, count_tokens, derive_metadata
from rfpsearch.utils.errors import InvalidInputError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_chunker(max_tokens: int = 500, overlap: int = 50) -> SegmentChunker:
    return SegmentChunker(max_tokens=max_tokens, overlap=overlap)


def _words(n: int, prefix: str = "w") -> str:
    return " ".join(f"{prefix}{i}" for i in range(n))


def _assert_exact_offsets(text: str, chunks) -> None:
    for chunk in chunks:
        assert text[chunk.char_start : chunk.char_end] == chunk.text


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


class TestSegmentation:
    def test_short_section_and_long_section(self) -> None:
        text = "1.1 Overview\nThis is a short intro.\n\n1.2 Details\n" + _words(600)
        chunks = _make_chunker().chunk(text)

        assert len(chunks) == 3
        assert chunks[0].text == "1.1 Overview\nThis is a short intro."
        assert chunks[0].token_count < 50
        assert chunks[0].metadata.section == "1.1 Overview"

        first, second = chunks[1], chunks[2]
        assert first.token_count == 500
        # "1.2 Details" adds two words to the 600-word body.
        assert second.token_count == 152
        first_words = first.text.split()
        second_words = second.text.split()
        assert first_words[-50:] == second_words[:50]
        _assert_exact_offsets(text, chunks)

    def test_window_sizes_for_long_segment(self) -> None:
        body = _words(600)
        chunks = _make_chunker().chunk(body)

        assert [c.token_count for c in chunks] == [500, 150]
        assert chunks[1].text.split()[0] == "w450"
        assert chunks[1].text.split()[-1] == "w599"

    def test_heading_starts_new_segment_without_blank_line(self) -> None:
        text = "Preamble line\n2 Scope\nScope body\n2.1 Deliverables\nDeliverable body"
        chunks = _make_chunker().chunk(text)

        assert [c.text for c in chunks] == [
            "Preamble line",
            "2 Scope\nScope body",
            "2.1 Deliverables\nDeliverable body",
        ]

    def test_question_and_answer_are_separate_chunks(self) -> None:
        text = "Question: Do you support SSO?\nAnswer: Yes, via SAML 2.0 and OIDC."
        chunks = _make_chunker().chunk(text)

        assert len(chunks) == 2
        assert chunks[0].metadata.is_question
        assert not chunks[0].metadata.is_answer
        assert chunks[1].metadata.is_answer
        assert not chunks[1].metadata.is_question

    def test_blank_line_ends_segment(self) -> None:
        chunks = _make_chunker().chunk("First paragraph.\n\nSecond paragraph.")
        assert [c.text for c in chunks] == ["First paragraph.", "Second paragraph."]

    def test_short_segments_are_never_merged(self) -> None:
        text = "\n\n".join(f"Para {i}." for i in range(10))
        chunks = _make_chunker().chunk(text)
        assert len(chunks) == 10

    def test_rfp_sample(self, sample_rfp_text: str) -> None:
        chunks = _make_chunker().chunk(sample_rfp_text)

        sections = [c.metadata.section for c in chunks if c.metadata.section]
        assert sections == ["1 Introduction", "2.1 Security Compliance", "2.2 Pricing"]
        assert sum(c.metadata.is_question for c in chunks) == 1
        assert sum(c.metadata.is_answer for c in chunks) == 1
        _assert_exact_offsets(sample_rfp_text, chunks)


# ---------------------------------------------------------------------------
# Offsets
# ---------------------------------------------------------------------------


class TestOffsets:
    def test_duplicate_passages_get_distinct_offsets(self) -> None:
        text = "Repeated clause.\n\nRepeated clause.\n\nRepeated clause."
        chunks = _make_chunker().chunk(text)

        assert len(chunks) == 3
        starts = [c.char_start for c in chunks]
        assert starts == sorted(set(starts))
        _assert_exact_offsets(text, chunks)

    def test_offsets_skip_surrounding_whitespace(self) -> None:
        text = "   \n  Indented paragraph here.  \n\n"
        chunks = _make_chunker().chunk(text)

        assert len(chunks) == 1
        assert chunks[0].text == "Indented paragraph here."
        _assert_exact_offsets(text, chunks)

    def test_window_offsets_are_exact(self) -> None:
        text = "4 Terms\n" + " ".join(["same"] * 30)
        chunks = _make_chunker(max_tokens=10, overlap=3).chunk(text)

        assert len(chunks) > 1
        _assert_exact_offsets(text, chunks)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.char_start < prev.char_end


# ---------------------------------------------------------------------------
# Options and contract
# ---------------------------------------------------------------------------


class TestOptions:
    def test_blank_input_yields_no_chunks(self) -> None:
        assert _make_chunker().chunk("") == []
        assert _make_chunker().chunk("  \n\n \t ") == []

    def test_per_call_override(self) -> None:
        chunker = _make_chunker()
        chunks = chunker.chunk(_words(30), max_tokens=10, overlap=2)

        assert all(c.token_count <= 10 for c in chunks)
        assert len(chunks) == 4

    def test_zero_overlap(self) -> None:
        chunks = _make_chunker(max_tokens=10, overlap=0).chunk(_words(25))
        assert [c.token_count for c in chunks] == [10, 10, 5]

    @pytest.mark.parametrize(("max_tokens", "overlap"), [(0, 0), (-5, 0), (10, 10), (10, -1)])
    def test_invalid_window_rejected(self, max_tokens: int, overlap: int) -> None:
        with pytest.raises(InvalidInputError):
            SegmentChunker(max_tokens=max_tokens, overlap=overlap)

    def test_invalid_override_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            _make_chunker().chunk("text", max_tokens=5, overlap=5)

    def test_non_string_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            _make_chunker().chunk(None)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Helpers under test
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_count_tokens(self) -> None:
        assert count_tokens("") == 0
        assert count_tokens("  one\ttwo\nthree  ") == 3

    def test_derive_metadata_section(self) -> None:
        meta = derive_metadata("3.2.1 Data Retention\nKeep logs for a year.")
        assert meta.section == "3.2.1 Data Retention"
        assert not meta.is_question

    def test_derive_metadata_plain_text(self) -> None:
        meta = derive_metadata("Plain paragraph")
        assert meta.section is None
        assert not meta.is_question
        assert not meta.is_answer

    def test_derive_metadata_case_insensitive_markers(self) -> None:
        assert derive_metadata("QUESTION: uptime?").is_question
        assert derive_metadata("answer: 99.9%").is_answer
