"""API middleware -- CORS, request logging, and error handling.

Every error reaches the client as ``{"success": false, "error", "detail"}``.
Malformed request parameters are answered with 400; application errors
map through :func:`status_for`.

Starlette runs middleware last-added-first, so ``create_app`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware``; the logger
then sees the final status code, including error responses built here.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from rfpsearch.api.schemas import ErrorResponse
from rfpsearch.utils.errors import DuplicateDocumentError, RFPSearchError, ValidationError
from rfpsearch.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; ``None`` allows every origin (development)."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


def status_for(exc: RFPSearchError) -> int:
    """HTTP status for an application error."""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, DuplicateDocumentError):
        return 409
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn exceptions raised by routes into ``{"success": false, ...}`` JSON.

    ``RFPSearchError`` client errors carry their message; server errors are
    logged with full detail and answered with the message only, never a
    traceback.  Any other exception is logged and answered with a generic 500.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except RFPSearchError as exc:
            status_code = status_for(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(error=exc.message, detail=type(exc).__name__)
            return JSONResponse(
                status_code=status_code,
                content=body.model_dump(by_alias=True),
            )
        except Exception as exc:
            _logger.error(
                "unhandled_error",
                error_type=type(exc).__name__,
                error=str(exc),
                path=str(request.url.path),
                exc_info=True,
            )
            body = ErrorResponse(error="Internal server error", detail="InternalServerError")
            return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))


def describe_validation_error(exc: RequestValidationError) -> str:
    """One line naming the first offending request parameter."""
    errors = exc.errors()
    if not errors:
        return "Invalid request parameters"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "is invalid")
    return f"{'.'.join(location)}: {message}" if location else message


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed parameters with 400 and the usual error body."""
    message = describe_validation_error(exc)
    _logger.warning(
        "request_validation_failed",
        path=str(request.url.path),
        message=message,
        errors=len(exc.errors()),
    )
    body = ErrorResponse(error=message, detail=type(exc).__name__)
    return JSONResponse(status_code=400, content=body.model_dump(by_alias=True))
