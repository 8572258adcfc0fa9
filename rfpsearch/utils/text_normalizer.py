"""Text normalization for extracted RFP document text.

Raw text coming out of PDF/DOCX/XLSX extraction carries artefacts that hurt
both chunking and embedding quality: control characters, typographic
quotes and dashes, repeated page headers/footers, and ragged whitespace.
:func:`normalize_text` cleans these up in a fixed order -- later steps
assume the earlier ones already ran:

    1. strip control characters (tab, LF and CR survive)
    2. curly quotes -> straight quotes
    3. em/en dashes -> hyphen
    4. drop page-header/footer lines ("Page 3 of 10", "Page 3", "3 of 10",
       CONFIDENTIAL banners, copyright lines)
    5. collapse runs of spaces/tabs
    6. CRLF / CR -> LF
    7. collapse 3+ newlines to a paragraph break
    8. empty out whitespace-only lines
    9. trim

The result is idempotent: normalizing already-normalized text returns it
unchanged.
"""

import re

import structlog

from rfpsearch.utils.errors import InvalidInputError
from rfpsearch.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_SINGLE_QUOTES = re.compile(r"[‘’]")
_DOUBLE_QUOTES = re.compile(r"[“”]")
_DASHES = re.compile(r"[—–]")

# Line anchors that treat LF, CR and CRLF alike.  Header stripping runs
# before line endings are normalized, so ``re.MULTILINE`` alone (which only
# knows about LF) would miss lines in CR-terminated text.
_BOL = r"(?<![^\r\n])"
_EOL = r"(?![^\r\n])"

_BOILERPLATE_LINES: tuple[re.Pattern[str], ...] = (
    re.compile(_BOL + r"[ \t]*Page[ \t]+\d+[ \t]+of[ \t]+\d+[ \t]*" + _EOL),
    re.compile(_BOL + r"[ \t]*Page[ \t]+\d+[ \t]*" + _EOL),
    re.compile(_BOL + r"[ \t]*\d+[ \t]+of[ \t]+\d+[ \t]*" + _EOL),
    re.compile(_BOL + r"[ \t]*CONFIDENTIAL[^\r\n]*", re.IGNORECASE),
    re.compile(_BOL + r"[ \t]*(?:©|Copyright)[^\r\n]*"),
)

_MULTI_SPACE = re.compile(r"[ \t]+")
_CRLF = re.compile(r"\r\n?")
_MULTI_NEWLINE = re.compile(r"\n{3,}")
_BLANK_LINE = re.compile(r"^[ \t]+$", re.MULTILINE)


def strip_boilerplate_lines(text: str) -> str:
    """Blank out page numbers, confidentiality banners and copyright lines.

    The line itself is emptied but its terminator is kept, so the
    surrounding paragraph structure survives until newline collapsing.
    """
    for pattern in _BOILERPLATE_LINES:
        text = pattern.sub("", text)
    return text


def normalize_text(raw_text: str) -> str:
    """Clean raw extracted text ahead of chunking and embedding.

    Args:
        raw_text: Text as returned by a document extractor.

    Returns:
        The normalized text.  If normalization removes everything, the
        trimmed original is returned instead and a warning is logged.

    Raises:
        InvalidInputError: If *raw_text* is not a string.
    """
    if not isinstance(raw_text, str):
        raise InvalidInputError(
            message=f"normalize_text expects a string, got {type(raw_text).__name__}"
        )

    text = _CONTROL_CHARS.sub("", raw_text)
    text = _SINGLE_QUOTES.sub("'", text)
    text = _DOUBLE_QUOTES.sub('"', text)
    text = _DASHES.sub("-", text)
    text = strip_boilerplate_lines(text)
    text = _MULTI_SPACE.sub(" ", text)
    text = _CRLF.sub("\n", text)
    text = _MULTI_NEWLINE.sub("\n\n", text)
    text = _BLANK_LINE.sub("", text)
    # Emptying whitespace-only lines can reopen a 3+ newline run.
    text = _MULTI_NEWLINE.sub("\n\n", text)
    text = text.strip()

    if not text:
        _logger.warning(
            "normalization_emptied_text",
            original_length=len(raw_text),
        )
        return raw_text.strip()

    return text
