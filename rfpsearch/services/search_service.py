"""Hybrid keyword + semantic search over completed chunks.

Three modes:

    keyword   -- full-text search only; results carry ``fts_score``
    semantic  -- embed the query, then vector search; results carry ``vector_score``
    hybrid    -- both paths concurrently, merged by weighted score

In hybrid mode each path asks the store for ``2 * top_k`` candidates, and the
merged ranking uses::

    hybrid_score = alpha * vector_score + (1 - alpha) * fts_score

A failing path degrades the request to the other one (the served
``search_type`` says which, and ``errors`` says why); only both failing
raises :class:`SearchError`.  Hybrid searches are recorded in the search log
by a detached task, so a slow or failing log write never touches the
response.
"""

from __future__ import annotations

import asyncio
import re
import time
from datetime import datetime
from typing import Any

import structlog

from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.models.search import (
    RankedResult,
    SearchHit,
    SearchLogEntry,
    SearchOutcome,
    SearchPathError,
    SearchType,
)
from rfpsearch.services.embedding_service import EmbeddingService
from rfpsearch.utils.errors import RFPSearchError, SearchError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

_DENYLIST = re.compile(
    r"(\-\-|;|\/\*|\*\/|xp_|sp_|exec|execute|drop|delete|truncate|alter)",
    re.IGNORECASE,
)

_TYPE_ALIASES: dict[str, SearchType] = {
    "hybrid": SearchType.HYBRID,
    "keyword": SearchType.KEYWORD,
    "fts": SearchType.KEYWORD,
    "semantic": SearchType.SEMANTIC,
    "vector": SearchType.SEMANTIC,
}

# Candidates fetched per path in hybrid mode, as a multiple of top_k.
CANDIDATE_MULTIPLIER = 2


def resolve_search_type(raw: str | None) -> SearchType:
    """Map a ``type`` parameter to a search mode; unknown values mean hybrid."""
    if not raw:
        return SearchType.HYBRID
    return _TYPE_ALIASES.get(raw.strip().lower(), SearchType.HYBRID)


def merge_results(
    keyword_hits: list[SearchHit],
    vector_hits: list[SearchHit],
    alpha: float,
) -> list[RankedResult]:
    """Merge keyword and vector hits into one list ranked by hybrid score.

    Keyword hits are inserted first with ``vector_score = 0``.  A vector hit
    for a chunk already present only sets its ``vector_score``; any other
    vector hit is appended with ``fts_score = 0``.  The sort is stable, so
    equal hybrid scores keep keyword-first insertion order.  The caller
    truncates to ``top_k``.
    """
    merged: dict[str, dict[str, Any]] = {}

    for hit in keyword_hits:
        merged[hit.chunk_id] = _entry(hit, fts_score=_clamp(hit.score), vector_score=0.0)

    for hit in vector_hits:
        existing = merged.get(hit.chunk_id)
        if existing is not None:
            existing["vector_score"] = _clamp(hit.score)
        else:
            merged[hit.chunk_id] = _entry(hit, fts_score=0.0, vector_score=_clamp(hit.score))

    for item in merged.values():
        item["hybrid_score"] = alpha * item["vector_score"] + (1 - alpha) * item["fts_score"]

    ranked = sorted(merged.values(), key=lambda item: item["hybrid_score"], reverse=True)
    return [RankedResult(**item) for item in ranked]


def _entry(hit: SearchHit, *, fts_score: float, vector_score: float) -> dict[str, Any]:
    entry = hit.model_dump(exclude={"score"})
    entry["fts_score"] = fts_score
    entry["vector_score"] = vector_score
    return entry


def _clamp(score: float | None) -> float:
    if score is None or score != score:  # NaN
        return 0.0
    return min(max(float(score), 0.0), 1.0)


def _message(exc: BaseException) -> str:
    return exc.message if isinstance(exc, RFPSearchError) else str(exc)


class HybridSearchService:
    """Validates search requests, runs them, and records hybrid searches."""

    def __init__(
        self,
        store: IDocumentStore,
        embedding_service: EmbeddingService,
        default_alpha: float = 0.6,
        default_top_k: int = 10,
        max_top_k: int = 100,
        min_query_length: int = 2,
        max_query_length: int = 500,
    ) -> None:
        self._store = store
        self._embeddings = embedding_service
        self._default_alpha = default_alpha
        self._default_top_k = default_top_k
        self._max_top_k = max_top_k
        self._min_query_length = min_query_length
        self._max_query_length = max_query_length
        self._log_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_query(self, query: Any) -> str:
        """Return the trimmed query or raise :class:`ValidationError`."""
        if not query or not isinstance(query, str):
            raise ValidationError(message='Query parameter "q" is required and must be a string')

        cleaned = query.strip()
        if len(cleaned) < self._min_query_length:
            raise ValidationError(
                message=f"Query must be at least {self._min_query_length} characters long"
            )
        if len(cleaned) > self._max_query_length:
            raise ValidationError(
                message=f"Query must not exceed {self._max_query_length} characters"
            )
        if _DENYLIST.search(cleaned):
            raise ValidationError(message="Query contains invalid characters or patterns")
        return cleaned

    def validate_top_k(self, raw: Any) -> int:
        """Parse ``topK``; empty means the default, otherwise 1..max_top_k."""
        if raw is None or raw == "":
            return self._default_top_k
        try:
            parsed = int(str(raw).strip())
        except ValueError:
            raise ValidationError(message="topK must be a positive integer") from None
        if parsed < 1:
            raise ValidationError(message="topK must be a positive integer")
        if parsed > self._max_top_k:
            raise ValidationError(message=f"topK must not exceed {self._max_top_k}")
        return parsed

    def validate_alpha(self, raw: Any) -> float | None:
        """Parse ``alpha``; empty means "use the configured default"."""
        if raw is None or raw == "":
            return None
        try:
            parsed = float(str(raw).strip())
        except ValueError:
            raise ValidationError(message="alpha must be a number between 0 and 1") from None
        if parsed != parsed or parsed < 0 or parsed > 1:
            raise ValidationError(message="alpha must be between 0 and 1")
        return parsed

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        top_k: int | None = None,
        alpha: float | None = None,
        search_type: SearchType = SearchType.HYBRID,
        user_id: str | None = None,
        ip_address: str | None = None,
    ) -> SearchOutcome:
        """Run one search in the requested mode.

        Raises
        ------
        ValidationError
            If the query, ``top_k`` or ``alpha`` is out of range.
        SearchError
            If the requested path (or, in hybrid mode, both paths) failed.
        """
        query = self.validate_query(query)
        top_k = self.validate_top_k(top_k)
        alpha = self.validate_alpha(alpha)

        match search_type:
            case SearchType.KEYWORD:
                return await self._keyword_search(query, top_k)
            case SearchType.SEMANTIC:
                return await self._semantic_search(query, top_k)
            case _:
                weight = self._default_alpha if alpha is None else alpha
                return await self._hybrid_search(query, top_k, weight, user_id, ip_address)

    async def _keyword_search(self, query: str, top_k: int) -> SearchOutcome:
        started = time.perf_counter()
        try:
            hits = await self._store.keyword_search(query, top_k)
        except RFPSearchError as exc:
            logger.error("keyword_search_failed", error=str(exc))
            raise SearchError(message=f"Keyword search failed: {_message(exc)}") from exc

        results = [
            RankedResult(**hit.model_dump(exclude={"score"}), fts_score=_clamp(hit.score))
            for hit in hits[:top_k]
        ]
        return self._outcome(query, top_k, None, SearchType.KEYWORD, started, results, [])

    async def _semantic_search(self, query: str, top_k: int) -> SearchOutcome:
        started = time.perf_counter()
        try:
            embedding = await self._embeddings.embed(query)
            hits = await self._store.vector_search(embedding, top_k)
        except RFPSearchError as exc:
            logger.error("semantic_search_failed", error=str(exc))
            raise SearchError(message=f"Semantic search failed: {_message(exc)}") from exc

        results = [
            RankedResult(**hit.model_dump(exclude={"score"}), vector_score=_clamp(hit.score))
            for hit in hits[:top_k]
        ]
        return self._outcome(query, top_k, None, SearchType.SEMANTIC, started, results, [])

    async def _hybrid_search(
        self,
        query: str,
        top_k: int,
        alpha: float,
        user_id: str | None,
        ip_address: str | None,
    ) -> SearchOutcome:
        started = time.perf_counter()
        errors: list[SearchPathError] = []
        candidates = top_k * CANDIDATE_MULTIPLIER

        query_embedding: list[float] | None = None
        try:
            query_embedding = await self._embeddings.embed(query)
        except Exception as exc:
            logger.warning("query_embedding_failed", error=str(exc))
            errors.append(SearchPathError(type="embedding", message=_message(exc)))

        keyword_coro = self._store.keyword_search(query, candidates)
        if query_embedding is not None:
            keyword_out, vector_out = await asyncio.gather(
                keyword_coro,
                self._store.vector_search(query_embedding, candidates),
                return_exceptions=True,
            )
        else:
            (keyword_out,) = await asyncio.gather(keyword_coro, return_exceptions=True)
            vector_out = None

        keyword_ok = not isinstance(keyword_out, BaseException)
        vector_ok = vector_out is not None and not isinstance(vector_out, BaseException)
        if not keyword_ok:
            logger.warning("keyword_path_failed", error=str(keyword_out))
            errors.append(SearchPathError(type="fts", message=_message(keyword_out)))
        if isinstance(vector_out, BaseException):
            logger.warning("vector_path_failed", error=str(vector_out))
            errors.append(SearchPathError(type="vector", message=_message(vector_out)))

        if not keyword_ok and not vector_ok:
            raise SearchError(
                message="Both keyword and vector search paths failed: "
                + "; ".join(f"{e.type}: {e.message}" for e in errors)
            )

        if keyword_ok and vector_ok:
            served = SearchType.HYBRID
        elif keyword_ok:
            served = SearchType.KEYWORD
        else:
            served = SearchType.SEMANTIC

        keyword_hits = keyword_out if keyword_ok else []
        vector_hits = vector_out if vector_ok else []
        results = merge_results(keyword_hits, vector_hits, alpha)[:top_k]

        outcome = self._outcome(query, top_k, alpha, served, started, results, errors)
        if errors:
            logger.warning("search_degraded", served=served.value, errors=[e.type for e in errors])

        self._log_search(
            SearchLogEntry(
                user_id=user_id,
                query_text=query,
                search_type=served,
                filters={"topK": top_k, "alpha": alpha},
                results_count=outcome.results_count,
                response_time_ms=outcome.response_time_ms,
                ip_address=ip_address,
            )
        )
        return outcome

    @staticmethod
    def _outcome(
        query: str,
        top_k: int,
        alpha: float | None,
        served: SearchType,
        started: float,
        results: list[RankedResult],
        errors: list[SearchPathError],
    ) -> SearchOutcome:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "search_complete",
            search_type=served.value,
            top_k=top_k,
            results=len(results),
            response_time_ms=elapsed_ms,
        )
        return SearchOutcome(
            query=query,
            top_k=top_k,
            alpha=alpha,
            search_type=served,
            response_time_ms=elapsed_ms,
            results=results,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Search log
    # ------------------------------------------------------------------

    def _log_search(self, entry: SearchLogEntry) -> None:
        """Write *entry* from a detached task; failures are logged, never raised."""
        task = asyncio.create_task(self._write_log(entry))
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    async def _write_log(self, entry: SearchLogEntry) -> None:
        try:
            await self._store.insert_search_log(entry)
        except Exception as exc:
            logger.warning("search_log_write_failed", error=str(exc), query=entry.query_text)

    async def flush_logs(self) -> None:
        """Wait for in-flight search-log writes (shutdown and tests)."""
        if self._log_tasks:
            await asyncio.gather(*self._log_tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def get_stats(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        popular_limit: int = 10,
    ) -> dict[str, Any]:
        """Chunk counts, per-type search analytics and popular queries."""
        chunk_stats, analytics, popular = await asyncio.gather(
            self._store.get_chunk_stats(),
            self._store.get_search_analytics(start, end),
            self._store.get_popular_queries(popular_limit),
        )
        return {
            "chunks": chunk_stats,
            "search_types": analytics,
            "popular_queries": popular,
        }
