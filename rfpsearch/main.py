"""rfpsearch FastAPI application entry point.

Wires providers and services together by constructor injection, owns their
lifecycle (store schema, embedding model load, queue workers), and exposes
the HTTP API.  Configuration comes from ``.env``/environment variables and
``config/config.yaml``.

``build_components`` / ``start_components`` / ``stop_components`` are also
used by the CLI and the reconciliation script, so every entry point runs
the same assembly.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from rfpsearch import __version__
from rfpsearch.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    validation_error_handler,
)
from rfpsearch.api.routes import router as api_router
from rfpsearch.config.loader import load_config
from rfpsearch.config.settings import Settings
from rfpsearch.interfaces.embedding_provider import IEmbeddingProvider
from rfpsearch.models.job import JobOptions
from rfpsearch.providers.embedding import (
    FastEmbedEmbeddingProvider,
    HashEmbeddingProvider,
    SentenceTransformerEmbeddingProvider,
)
from rfpsearch.providers.parser import FileTextExtractor
from rfpsearch.providers.queue import InMemoryJobQueue
from rfpsearch.providers.storage import SQLiteDocumentStore
from rfpsearch.services.chunker import SegmentChunker
from rfpsearch.services.document_service import DocumentService
from rfpsearch.services.embedding_service import EmbeddingService
from rfpsearch.services.embedding_worker import EmbeddingWorker
from rfpsearch.services.ingestion_service import IngestionOrchestrator
from rfpsearch.services.search_service import HybridSearchService
from rfpsearch.utils.errors import ConfigurationError
from rfpsearch.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Embedding backend selection
# ---------------------------------------------------------------------------


def _build_embedding_service(app_settings: Settings) -> EmbeddingService:
    """Pick the configured backend, with the hash provider as fallback.

    ``EMBEDDING_BACKEND=hash`` uses the hash provider directly and never
    touches a model library.
    """
    backend = app_settings.embedding_backend.strip().lower()
    hash_provider = HashEmbeddingProvider(dimension=app_settings.embedding_dimension)

    primary: IEmbeddingProvider
    fallback: IEmbeddingProvider | None = hash_provider
    if backend == "hash":
        primary, fallback = hash_provider, None
    elif backend == "fastembed":
        primary = FastEmbedEmbeddingProvider(model_name=app_settings.embedding_model_name)
    elif backend in ("sentence-transformers", "sentence_transformers"):
        primary = SentenceTransformerEmbeddingProvider(model_name=app_settings.embedding_model_name)
    else:
        raise ConfigurationError(
            message=f"Unknown EMBEDDING_BACKEND '{app_settings.embedding_backend}'; "
            "expected fastembed, sentence-transformers or hash"
        )

    return EmbeddingService(
        provider=primary,
        fallback=fallback,
        dimension=app_settings.embedding_dimension,
        model_version=app_settings.embedding_model_version,
        batch_size=app_settings.embed_batch_size,
        max_concurrency=app_settings.embed_worker_concurrency,
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings | None = None,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service.

    Returns a flat dict of named components, stored on ``app.state`` by the
    web app and used directly by the CLI.
    """
    app_settings = app_settings or settings
    app_config = app_config if app_config is not None else load_config(settings=app_settings)
    queue_cfg = app_config.get("queue", {})
    upload_cfg = app_config.get("upload", {})
    search_cfg = app_config.get("search", {})

    job_options = JobOptions(
        attempts=app_settings.queue_attempts,
        backoff_base_seconds=app_settings.queue_backoff_base_seconds,
        remove_on_complete=app_settings.queue_remove_on_complete,
        remove_on_fail=app_settings.queue_remove_on_fail,
    )

    store = SQLiteDocumentStore(db_path=app_settings.database_path)
    queue = InMemoryJobQueue(default_options=job_options)
    embedding_service = _build_embedding_service(app_settings)
    chunker = SegmentChunker(
        max_tokens=app_settings.chunk_max_tokens,
        overlap=app_settings.chunk_overlap,
    )

    ingestion = IngestionOrchestrator(
        store=store,
        extractor=FileTextExtractor(),
        chunker=chunker,
        queue=queue,
        embed_job_options=job_options.model_copy(
            update={"priority": int(queue_cfg.get("upload_embed_priority", 10))}
        ),
    )
    embedding_worker = EmbeddingWorker(store=store, embedding_service=embedding_service)

    search_service = HybridSearchService(
        store=store,
        embedding_service=embedding_service,
        default_alpha=app_settings.search_alpha,
        default_top_k=app_settings.search_default_top_k,
        max_top_k=app_settings.search_max_top_k,
        min_query_length=int(search_cfg.get("min_query_length", 2)),
        max_query_length=int(search_cfg.get("max_query_length", 500)),
    )

    allowed_mime = upload_cfg.get("allowed_mime_types")
    document_service = DocumentService(
        store=store,
        queue=queue,
        upload_dir=app_settings.upload_dir,
        max_files=int(upload_cfg.get("max_files", 5)),
        max_file_size_bytes=int(upload_cfg.get("max_file_size_mb", 10)) * 1024 * 1024,
        allowed_mime_types=frozenset(allowed_mime) if allowed_mime else None,
        ingest_job_options=job_options,
    )

    return {
        "settings": app_settings,
        "config": app_config,
        "store": store,
        "queue": queue,
        "embedding_service": embedding_service,
        "chunker": chunker,
        "ingestion": ingestion,
        "embedding_worker": embedding_worker,
        "search_service": search_service,
        "document_service": document_service,
        "job_options": job_options,
    }


async def start_components(components: dict[str, Any]) -> None:
    """Create the schema, load the embedding model, register handlers, start workers."""
    app_settings: Settings = components["settings"]
    queue: InMemoryJobQueue = components["queue"]

    await components["store"].initialize()
    await components["embedding_service"].initialize()

    queue.register_handler(
        "ingest",
        components["ingestion"].handle,
        concurrency=app_settings.ingest_worker_concurrency,
    )
    for kind in ("embed_chunks", "embed_document"):
        queue.register_handler(
            kind,
            components["embedding_worker"].handle,
            concurrency=app_settings.embed_worker_concurrency,
        )
    await queue.start()


async def stop_components(components: dict[str, Any]) -> None:
    """Flush search logs, stop workers, release the model and the store."""
    await components["search_service"].flush_logs()
    await components["queue"].stop()
    await components["embedding_service"].shutdown()
    await components["store"].close()


# ---------------------------------------------------------------------------
# Application lifecycle
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build and start all components on startup, stop them on shutdown."""
    components = getattr(application.state, "components", None) or build_components()
    await start_components(components)

    for key, value in components.items():
        setattr(application.state, key, value)
    application.state.started_at = time.monotonic()

    meta = components["embedding_service"].get_model_metadata()
    _logger.info(
        "app_startup",
        version=__version__,
        environment=components["settings"].app_env,
        embedding_backend=meta.backend,
        database=components["settings"].database_path,
    )

    yield

    await stop_components(components)
    _logger.info("app_shutdown")


def create_app(components: dict[str, Any] | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Pass pre-built *components* to run against a custom store or settings
    (tests do); otherwise they are built from the environment at startup.
    """
    application = FastAPI(
        title="rfpsearch API",
        version=__version__,
        description=(
            "Upload RFP documents per client and search them by keyword, "
            "by meaning, or by a weighted blend of both."
        ),
        lifespan=_lifespan,
    )
    if components is not None:
        application.state.components = components

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    app_settings = components["settings"] if components else settings
    configure_cors(application, allowed_origins=app_settings.get_cors_origins())
    application.add_exception_handler(RequestValidationError, validation_error_handler)

    application.include_router(api_router)
    return application


app = create_app()


def main() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "rfpsearch.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
