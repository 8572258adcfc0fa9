"""Utility modules for rfpsearch.

- **errors** -- Domain exception hierarchy rooted at RFPSearchError.
- **logging** -- structlog setup with a dual console/JSON renderer.
- **concurrency** -- semaphore-bounded ``asyncio.gather``.
- **text_normalizer** -- cleanup of extracted document text before chunking.
"""

from rfpsearch.utils.concurrency import throttled_gather
from rfpsearch.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    DuplicateDocumentError,
    EmbeddingError,
    ExtractionError,
    InvalidInputError,
    QueueError,
    RFPSearchError,
    SearchError,
    StorageError,
    UnsupportedFileTypeError,
    ValidationError,
)
from rfpsearch.utils.logging import configure_logging, get_logger
from rfpsearch.utils.text_normalizer import normalize_text

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "DuplicateDocumentError",
    "EmbeddingError",
    "ExtractionError",
    "InvalidInputError",
    "QueueError",
    "RFPSearchError",
    "SearchError",
    "StorageError",
    "UnsupportedFileTypeError",
    "ValidationError",
    "configure_logging",
    "get_logger",
    "normalize_text",
    "throttled_gather",
]
