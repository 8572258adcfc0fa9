"""rfpsearch domain models -- re-exports all public model classes.

Other modules import from ``rfpsearch.models`` rather than the individual
files.  Models are grouped by concern:

    - document.py  -- uploaded documents and their lifecycle status
    - chunk.py     -- chunker output, stored chunks, embedding write-backs
    - embedding.py -- batch embedding results and model provenance
    - job.py       -- tagged-union job payloads and queue job state
    - search.py    -- search hits, ranked results, search-log rows
"""

from __future__ import annotations

from rfpsearch.models.chunk import (
    ChunkMetadata,
    ChunkStats,
    EmbeddingStatus,
    EmbeddingUpdate,
    StoredChunk,
    TextChunk,
)
from rfpsearch.models.document import Document, DocumentStatus, NewDocument, UploadedFile
from rfpsearch.models.embedding import EmbeddingResult, ModelMetadata
from rfpsearch.models.job import (
    JOB_NAMES,
    EmbedChunksJob,
    EmbedDocumentJob,
    IngestJob,
    JobOptions,
    JobPayload,
    JobRecord,
    JobState,
    new_batch_id,
    parse_job_payload,
)
from rfpsearch.models.search import (
    PopularQuery,
    RankedResult,
    SearchHit,
    SearchLogEntry,
    SearchOutcome,
    SearchPathError,
    SearchType,
    SearchTypeAnalytics,
)

__all__ = [
    "ChunkMetadata",
    "ChunkStats",
    "Document",
    "DocumentStatus",
    "EmbedChunksJob",
    "EmbedDocumentJob",
    "EmbeddingResult",
    "EmbeddingStatus",
    "EmbeddingUpdate",
    "IngestJob",
    "JOB_NAMES",
    "JobOptions",
    "JobPayload",
    "JobRecord",
    "JobState",
    "ModelMetadata",
    "NewDocument",
    "PopularQuery",
    "RankedResult",
    "SearchHit",
    "SearchLogEntry",
    "SearchOutcome",
    "SearchPathError",
    "SearchType",
    "SearchTypeAnalytics",
    "StoredChunk",
    "TextChunk",
    "UploadedFile",
    "new_batch_id",
    "parse_job_payload",
]
