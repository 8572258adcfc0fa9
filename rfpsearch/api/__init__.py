"""rfpsearch API layer -- routes, schemas, and middleware."""

from rfpsearch.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from rfpsearch.api.routes import router
from rfpsearch.api.schemas import (
    ErrorResponse,
    HealthResponse,
    SearchResponse,
    SearchStatsResponse,
    UploadResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "SearchResponse",
    "SearchStatsResponse",
    "UploadResponse",
]
