"""FastAPI routes for rfpsearch.

Endpoint                    Method  Description
--------------------------  ------  ---------------------------------------------
/api/v1/search              GET     Hybrid / keyword / semantic search
/api/v1/search/stats        GET     Chunk embedding progress + search analytics
/api/v1/upload              POST    Upload 1-5 RFP files for a client
/api/v1/health              GET     Liveness, database and embedding readiness

Service dependencies are resolved from ``app.state`` (populated by
``main.build_components``) through ``Annotated[..., Depends(...)]`` aliases, so
tests can swap any of them on the app state.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from rfpsearch import __version__
from rfpsearch.api.schemas import (
    DocumentItem,
    ErrorResponse,
    HealthResponse,
    SearchResponse,
    SearchStatsResponse,
    UploadResponse,
)
from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.models.document import UploadedFile
from rfpsearch.services.document_service import DocumentService
from rfpsearch.services.embedding_service import EmbeddingService
from rfpsearch.services.search_service import HybridSearchService, resolve_search_type
from rfpsearch.utils.errors import RFPSearchError, SearchError, ValidationError
from rfpsearch.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB pieces and cut off just past the size limit.
_UPLOAD_CHUNK_SIZE = 64 * 1024


def _get_search_service(request: Request) -> HybridSearchService:
    return request.app.state.search_service


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_store(request: Request) -> IDocumentStore:
    return request.app.state.store


def _get_embedding_service(request: Request) -> EmbeddingService:
    return request.app.state.embedding_service


SearchServiceDep = Annotated[HybridSearchService, Depends(_get_search_service)]
DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
StoreDep = Annotated[IDocumentStore, Depends(_get_store)]
EmbeddingServiceDep = Annotated[EmbeddingService, Depends(_get_embedding_service)]

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.get(
    "/search",
    response_model=SearchResponse,
    responses=_ERROR_RESPONSES,
    summary="Search RFP chunks by keyword, meaning, or both",
)
async def search(
    request: Request,
    search_service: SearchServiceDep,
    q: str | None = Query(default=None, description="Query text, 2-500 characters."),
    top_k: str | None = Query(default=None, alias="topK"),
    topk: str | None = Query(default=None, include_in_schema=False),
    limit: str | None = Query(default=None, include_in_schema=False),
    alpha: str | None = Query(default=None, description="Vector weight in [0, 1] (hybrid only)."),
    search_type: str | None = Query(default=None, alias="type"),
) -> SearchResponse:
    """Validate the query string and run the requested search mode."""
    raw_top_k = top_k or topk or limit
    query = search_service.validate_query(q)
    parsed_top_k = search_service.validate_top_k(raw_top_k)
    parsed_alpha = search_service.validate_alpha(alpha)

    try:
        outcome = await search_service.search(
            query,
            top_k=parsed_top_k,
            alpha=parsed_alpha,
            search_type=resolve_search_type(search_type),
            user_id=request.headers.get("x-user-id"),
            ip_address=request.client.host if request.client else None,
        )
    except ValidationError:
        raise
    except RFPSearchError as exc:
        _logger.error("search_request_failed", error=str(exc), error_type=type(exc).__name__)
        raise SearchError() from exc

    return SearchResponse.from_outcome(outcome)


@router.get(
    "/search/stats",
    response_model=SearchStatsResponse,
    responses={500: {"model": ErrorResponse}},
    summary="Embedding progress and search analytics",
)
async def search_stats(
    search_service: SearchServiceDep,
    start: datetime | None = Query(default=None, description="Window start (ISO 8601)."),
    end: datetime | None = Query(default=None, description="Window end (ISO 8601)."),
    popular_limit: int = Query(default=10, ge=1, le=100, alias="limit"),
) -> SearchStatsResponse:
    stats = await search_service.get_stats(start, end, popular_limit)
    return SearchStatsResponse(
        chunks=stats["chunks"].model_dump(),
        search_types=[a.model_dump(mode="json") for a in stats["search_types"]],
        popular_queries=[p.model_dump(mode="json") for p in stats["popular_queries"]],
    )


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


async def _read_limited(upload: UploadFile, max_bytes: int) -> bytes:
    """Read at most ``max_bytes + 1`` bytes so oversize files fail validation."""
    parts: list[bytes] = []
    total = 0
    while total <= max_bytes:
        part = await upload.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        parts.append(part)
        total += len(part)
    return b"".join(parts)


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=201,
    responses={**_ERROR_RESPONSES, 409: {"model": ErrorResponse}},
    summary="Upload RFP documents for a client",
)
async def upload_documents(
    request: Request,
    document_service: DocumentServiceDep,
    client_name: str | None = Form(default=None, alias="clientName"),
    files: list[UploadFile] = File(default=[]),
) -> UploadResponse:
    """Store 1-5 PDF/DOCX/XLSX files and queue each one for ingestion."""
    uploads = [
        UploadedFile(
            filename=f.filename or "upload",
            content_type=f.content_type or "",
            data=await _read_limited(f, document_service.max_file_size_bytes),
        )
        for f in files
    ]
    documents = await document_service.save_documents(
        client_name,
        uploads,
        uploader_id=request.headers.get("x-user-id"),
    )
    return UploadResponse(documents=[DocumentItem.from_document(d) for d in documents])


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(
    request: Request,
    store: StoreDep,
    embedding_service: EmbeddingServiceDep,
) -> HealthResponse:
    """Report database reachability and which embedding backend is serving."""
    database_ok = await store.ping()
    meta = embedding_service.get_model_metadata()
    embedding = {
        "ready": embedding_service.ready,
        "backend": meta.backend,
        "model": meta.name,
        "dimension": meta.dimension,
    }

    status = "healthy" if database_ok and embedding_service.ready else "degraded"
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return HealthResponse(
        status=status,
        version=__version__,
        uptime_seconds=round(time.monotonic() - started_at, 1),
        database=database_ok,
        embedding=embedding,
    )
