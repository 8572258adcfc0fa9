"""Custom exception hierarchy for rfpsearch.

All application exceptions inherit from :class:`RFPSearchError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "sqlite", "fastembed", "pymupdf") caused the failure.

The hierarchy is organized by pipeline domain:

    RFPSearchError  (base -- catch-all for any rfpsearch error)
    +-- InvalidInputError         (caller passed the wrong type of value)
    +-- ValidationError           (client-caused, surfaced as HTTP 400)
    |   +-- UnsupportedFileTypeError
    +-- DuplicateDocumentError    (same filename already uploaded for a client)
    +-- ExtractionError           (unreadable or corrupt source document)
    +-- EmbeddingError            (model invocation failure)
    |   +-- DimensionMismatchError
    +-- SearchError               (both keyword and vector paths failed)
    +-- StorageError              (database read/write failure)
    +-- QueueError                (job could not be enqueued)
    +-- ConfigurationError        (startup / bad settings)

Callers handle errors at exactly the level they care about -- the API maps
ValidationError to 400 and DuplicateDocumentError to 409, the embedding
worker records EmbeddingError per chunk, and the ingestion orchestrator
logs QueueError without failing the job.
"""


class RFPSearchError(Exception):
    """Base exception for all rfpsearch errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[sqlite] database is locked``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class InvalidInputError(RFPSearchError):
    """Raised when a function receives a value of the wrong type."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ValidationError(RFPSearchError):
    """Raised for client-caused problems: bad query, bad topK/alpha, missing field."""

    def __init__(
        self,
        message: str = "Request validation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFileTypeError(ValidationError):
    """Raised when an uploaded or ingested file has an unsupported extension or MIME type."""

    def __init__(
        self,
        message: str = "Unsupported file type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DuplicateDocumentError(RFPSearchError):
    """Raised when a (filename, client) pair has already been uploaded."""

    def __init__(
        self,
        message: str = "Document already exists for this client",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------

class ExtractionError(RFPSearchError):
    """Raised when text extraction from a source document fails."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(RFPSearchError):
    """Raised when an embedding model call fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DimensionMismatchError(EmbeddingError):
    """Raised when a model returns a vector whose length differs from the configured dimension."""

    def __init__(
        self,
        message: str = "Embedding dimension mismatch",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SearchError(RFPSearchError):
    """Raised when a search request cannot be served by any search path."""

    def __init__(
        self,
        message: str = "Search failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Infrastructure errors
# ---------------------------------------------------------------------------

class StorageError(RFPSearchError):
    """Raised when a database read or write fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class QueueError(RFPSearchError):
    """Raised when a job cannot be enqueued or the queue is not running."""

    def __init__(
        self,
        message: str = "Job queue operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RFPSearchError):
    """Raised when required configuration is missing or invalid."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
