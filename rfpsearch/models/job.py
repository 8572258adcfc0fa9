"""Job payload and job-state models for the background queue.

Payloads form a tagged union over ``kind``:

    IngestJob         -- extract, normalize, chunk and persist one document
    EmbedChunksJob    -- embed an explicit list of chunk ids
    EmbedDocumentJob  -- embed every chunk of a document still pending at run time

Handlers dispatch with ``match`` on the concrete class, so adding a new job
kind means adding a variant here and a case in the handler.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_batch_id() -> str:
    """Return a fresh correlation id for one embedding run."""
    return str(uuid.uuid4())


class IngestJob(BaseModel):
    """Ingest one uploaded document from disk."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ingest"] = "ingest"
    document_id: str
    file_path: str


class EmbedChunksJob(BaseModel):
    """Embed the listed chunks (those still pending when the job runs)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["embed_chunks"] = "embed_chunks"
    chunk_ids: list[str] = Field(min_length=1)
    batch_id: str = Field(default_factory=new_batch_id)
    timestamp: datetime = Field(default_factory=_utcnow)


class EmbedDocumentJob(BaseModel):
    """Embed all chunks of a document that are pending when the job runs."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["embed_document"] = "embed_document"
    document_id: str
    batch_id: str = Field(default_factory=new_batch_id)
    timestamp: datetime = Field(default_factory=_utcnow)


JobPayload = Annotated[
    Union[IngestJob, EmbedChunksJob, EmbedDocumentJob],
    Field(discriminator="kind"),
]

_PAYLOAD_ADAPTER: TypeAdapter[Any] = TypeAdapter(JobPayload)

# Queue-level job names, kept stable for log searches and dashboards.
JOB_NAMES: dict[str, str] = {
    "ingest": "ingest-document",
    "embed_chunks": "generate-embeddings",
    "embed_document": "generate-embeddings-document",
}


def parse_job_payload(data: dict[str, Any]) -> IngestJob | EmbedChunksJob | EmbedDocumentJob:
    """Validate a raw dict into the matching payload variant using its ``kind``."""
    return _PAYLOAD_ADAPTER.validate_python(data)


class JobOptions(BaseModel):
    """Delivery options for one job."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(default=2.0, ge=0.0)
    priority: int = Field(default=0, description="Higher runs sooner.")
    remove_on_complete: int = Field(default=10, ge=0)
    remove_on_fail: int = Field(default=5, ge=0)

    def backoff_delay(self, attempts_made: int) -> float:
        """Exponential delay before the next attempt: base, 2*base, 4*base..."""
        return self.backoff_base_seconds * (2 ** max(0, attempts_made - 1))


class JobState(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """Where a job is in its lifecycle."""

    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"


class JobRecord(BaseModel):
    """Snapshot of a job, retained for a bounded number of finished jobs."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    payload: JobPayload
    options: JobOptions
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None
