"""Search models: store hits, ranked results, and search-log rows.

A search result lives only for the duration of one request.  Search logs
are write-mostly rows read back only for analytics.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchType(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """Search mode requested by the caller or actually served."""

    HYBRID = "hybrid"
    KEYWORD = "keyword"
    SEMANTIC = "semantic"


class SearchHit(BaseModel):
    """One candidate chunk returned by a keyword or vector search.

    ``score`` is the path's own relevance in [0, 1]: normalized full-text
    rank for keyword hits, ``1 - cosine_distance`` for vector hits.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    text: str
    chunk_index: int
    section_title: str | None = None
    filename: str
    client_name: str
    uploaded_at: datetime
    score: float


class RankedResult(BaseModel):
    """A search result with its per-signal scores.

    Scores that did not take part in the search mode are ``None``: a keyword
    search carries only ``fts_score``, a semantic search only
    ``vector_score``, and a hybrid search all three.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    text: str
    chunk_index: int
    section_title: str | None = None
    filename: str
    client_name: str
    uploaded_at: datetime
    fts_score: float | None = None
    vector_score: float | None = None
    hybrid_score: float | None = None


class SearchPathError(BaseModel):
    """A sub-search that failed while the request as a whole still succeeded."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(description='"embedding", "fts" or "vector".')
    message: str


class SearchOutcome(BaseModel):
    """Everything the search endpoint reports for one query."""

    model_config = ConfigDict(frozen=True)

    query: str
    top_k: int
    alpha: float | None = None
    search_type: SearchType
    response_time_ms: int
    results: list[RankedResult] = Field(default_factory=list)
    errors: list[SearchPathError] = Field(default_factory=list)

    @property
    def results_count(self) -> int:
        return len(self.results)


class SearchLogEntry(BaseModel):
    """A single search, recorded best-effort after the response is computed."""

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    query_text: str
    search_type: SearchType
    filters: dict[str, Any] = Field(default_factory=dict)
    results_count: int = 0
    response_time_ms: int = 0
    ip_address: str | None = None


class SearchTypeAnalytics(BaseModel):
    """Aggregated search-log figures for one search type."""

    model_config = ConfigDict(frozen=True)

    search_type: str
    total_searches: int
    unique_users: int
    avg_results: float
    avg_response_time_ms: float


class PopularQuery(BaseModel):
    """A frequently issued query."""

    model_config = ConfigDict(frozen=True)

    query_text: str
    search_count: int
    avg_results: float
    last_searched: datetime
