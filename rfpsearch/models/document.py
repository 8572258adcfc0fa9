"""Document models -- one uploaded RFP file per client.

A document is created by the upload path with status ``uploaded`` and is
then advanced by the ingestion orchestrator.  Apart from ``status`` and the
soft-delete timestamp a document row never changes; its chunks are deleted
in cascade with it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """Lifecycle of a document through ingestion.

        UPLOADED → INGESTING → CHUNKS_PENDING

    ``FAILED`` is set when text extraction or chunk insertion fails.
    """

    UPLOADED = "uploaded"
    INGESTING = "ingesting"
    CHUNKS_PENDING = "chunks_pending"
    FAILED = "failed"


class Document(BaseModel):
    """A stored RFP document."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str = Field(description="Original filename as uploaded.")
    path: str = Field(description="Location of the stored file on disk.")
    uploader_id: str | None = None
    client_name: str
    file_size: int = Field(ge=0)
    mime_type: str
    status: DocumentStatus = DocumentStatus.UPLOADED
    uploaded_at: datetime
    deleted_at: datetime | None = None


class NewDocument(BaseModel):
    """Fields supplied by the upload path when inserting a document."""

    model_config = ConfigDict(frozen=True)

    filename: str
    path: str
    uploader_id: str | None = None
    client_name: str
    file_size: int = Field(ge=0)
    mime_type: str
    status: DocumentStatus = DocumentStatus.UPLOADED


class UploadedFile(BaseModel):
    """One file received by the upload endpoint, held in memory."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
