"""Pydantic response schemas for the rfpsearch HTTP API.

Field names are snake_case in Python and camelCase on the wire
(``top_k`` → ``topK``) through a shared alias generator; FastAPI
serializes response models by alias.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rfpsearch.models.document import Document
from rfpsearch.models.search import RankedResult, SearchOutcome

_SCORE_DECIMALS = 4


class ApiModel(BaseModel):
    """Base for wire models: camelCase aliases, construction by field name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchResultItem(ApiModel):
    """One ranked chunk.  ``scores`` holds only the signals the mode used."""

    chunk_id: str
    document_id: str
    text: str
    chunk_index: int
    section_title: str | None = None
    filename: str
    client_name: str
    uploaded_at: datetime
    scores: dict[str, float]

    @classmethod
    def from_result(cls, result: RankedResult) -> SearchResultItem:
        scores = {
            name: round(value, _SCORE_DECIMALS)
            for name, value in (
                ("hybrid", result.hybrid_score),
                ("fts", result.fts_score),
                ("vector", result.vector_score),
            )
            if value is not None
        }
        return cls(
            chunk_id=result.chunk_id,
            document_id=result.document_id,
            text=result.text,
            chunk_index=result.chunk_index,
            section_title=result.section_title,
            filename=result.filename,
            client_name=result.client_name,
            uploaded_at=result.uploaded_at,
            scores=scores,
        )


class SearchErrorItem(ApiModel):
    type: str
    message: str


class SearchResponse(ApiModel):
    """Body of ``GET /api/v1/search``."""

    success: bool = True
    query: str
    top_k: int
    alpha: float | None = None
    search_type: str
    results_count: int
    response_time_ms: int
    results: list[SearchResultItem] = Field(default_factory=list)
    errors: list[SearchErrorItem] | None = None

    @classmethod
    def from_outcome(cls, outcome: SearchOutcome) -> SearchResponse:
        return cls(
            query=outcome.query,
            top_k=outcome.top_k,
            alpha=outcome.alpha,
            search_type=outcome.search_type.value,
            results_count=outcome.results_count,
            response_time_ms=outcome.response_time_ms,
            results=[SearchResultItem.from_result(r) for r in outcome.results],
            errors=[SearchErrorItem(type=e.type, message=e.message) for e in outcome.errors] or None,
        )


class DocumentItem(ApiModel):
    id: str
    filename: str
    client_name: str
    path: str
    status: str
    file_size: int
    mime_type: str
    uploaded_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> DocumentItem:
        return cls(
            id=document.id,
            filename=document.filename,
            client_name=document.client_name,
            path=document.path,
            status=document.status.value,
            file_size=document.file_size,
            mime_type=document.mime_type,
            uploaded_at=document.uploaded_at,
        )


class UploadResponse(ApiModel):
    """Body of ``POST /api/v1/upload`` (HTTP 201)."""

    success: bool = True
    message: str = "Files uploaded successfully"
    documents: list[DocumentItem]


class SearchStatsResponse(ApiModel):
    """Chunk embedding progress and search-log analytics."""

    success: bool = True
    chunks: dict[str, int]
    search_types: list[dict[str, Any]]
    popular_queries: list[dict[str, Any]]


class HealthResponse(ApiModel):
    """Application health check response."""

    status: str
    version: str
    uptime_seconds: float
    database: bool
    embedding: dict[str, Any]


class ErrorResponse(ApiModel):
    """Standard error response body."""

    success: bool = False
    error: str
    detail: str | None = None
