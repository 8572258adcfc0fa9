"""Chunk models: chunker output, stored rows, and embedding write-backs.

``TextChunk`` is what the segment chunker produces from normalized text.
``StoredChunk`` is the persisted row; ``embedding`` is set exactly when
``embedding_status`` is ``completed``.  ``EmbeddingUpdate`` is the record the
embedding worker writes back for one chunk.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingStatus(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """Per-chunk embedding state.  ``failed`` is terminal until reprocessed."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ChunkMetadata(BaseModel):
    """Structural tags derived from the first line of a chunk."""

    model_config = ConfigDict(frozen=True)

    section: str | None = Field(
        default=None,
        description='Numbered heading the chunk opens with, e.g. "2.1 Scope".',
    )
    is_question: bool = False
    is_answer: bool = False


class TextChunk(BaseModel):
    """A contiguous slice of normalized document text.

    ``char_start``/``char_end`` are exact offsets into the text passed to the
    chunker: ``text == source[char_start:char_end]`` for every chunk.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    token_count: int = Field(ge=0, description="Whitespace-delimited word count.")
    char_start: int = Field(ge=0)
    char_end: int = Field(ge=0)
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class StoredChunk(BaseModel):
    """A chunk row as persisted by the document store."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    text: str
    token_count: int
    char_start: int
    char_end: int
    chunk_index: int
    section_title: str | None = None
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)
    embedding: list[float] | None = None
    embedding_status: EmbeddingStatus = EmbeddingStatus.PENDING
    embed_model: str | None = None
    embed_version: str | None = None
    embedding_batch_id: str | None = None
    embedding_error: str | None = None
    embedding_generated_at: datetime | None = None
    created_at: datetime | None = None


class EmbeddingUpdate(BaseModel):
    """Outcome of embedding one chunk, applied in a single batch transaction."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    success: bool
    batch_id: str
    embedding: list[float] | None = None
    embed_model: str | None = None
    embed_version: str | None = None
    error: str | None = None


class ChunkStats(BaseModel):
    """Counts of chunks by embedding status."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    pending: int = 0
    completed: int = 0
    failed: int = 0
