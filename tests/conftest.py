"""Shared pytest fixtures for the rfpsearch test suite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
import structlog

from rfpsearch.config.settings import Settings
from rfpsearch.providers.embedding import HashEmbeddingProvider
from rfpsearch.providers.storage import SQLiteDocumentStore
from rfpsearch.services.embedding_service import EmbeddingService

DIMENSION = 384


@pytest.fixture(autouse=True, scope="session")
def _test_logging() -> None:
    """Send logs to the session stderr at WARNING, without logger caching.

    Cached loggers keep the stream they were created with, which would be a
    closed capsys buffer after the test that first used them.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Return a path for a throwaway SQLite database."""
    return tmp_path / "rfpsearch-test.db"


@pytest.fixture
async def store(db_path: Path) -> SQLiteDocumentStore:
    """Create an initialized SQLiteDocumentStore in a temp directory."""
    s = SQLiteDocumentStore(db_path=db_path)
    await s.initialize()
    return s


@pytest.fixture
async def embedding_service() -> EmbeddingService:
    """An initialized EmbeddingService on the deterministic hash backend."""
    service = EmbeddingService(
        provider=HashEmbeddingProvider(dimension=DIMENSION),
        dimension=DIMENSION,
        batch_size=8,
    )
    await service.initialize()
    yield service
    await service.shutdown()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at temp storage with the offline hash backend."""
    return Settings(
        database_path=str(tmp_path / "api.db"),
        upload_dir=str(tmp_path / "uploads"),
        embedding_backend="hash",
        queue_backoff_base_seconds=0.0,
        _env_file=None,
    )


@pytest.fixture
def sample_rfp_text() -> str:
    """A small questionnaire-style RFP excerpt."""
    return (
        "1 Introduction\n"
        "Acme Corp invites proposals for managed security services.\n"
        "\n"
        "2.1 Security Compliance\n"
        "Vendors must describe their security compliance program, including "
        "SOC 2 Type II reports and ISO 27001 certification.\n"
        "\n"
        "Question: Do you encrypt customer data at rest?\n"
        "Answer: Yes, all customer data is encrypted at rest with AES-256.\n"
        "\n"
        "2.2 Pricing\n"
        "Provide a fixed monthly price for the first three years of service.\n"
    )
