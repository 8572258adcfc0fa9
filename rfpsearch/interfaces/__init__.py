"""Interface definitions for every external collaborator.

Services depend on these abstract base classes only; concrete adapters in
``rfpsearch/providers/`` are chosen and injected in ``rfpsearch/main.py``.
Unit tests inject mocks or the in-memory/hash implementations instead.

    Interface            →  Concrete implementations
    ──────────────────────────────────────────────────────────────
    IEmbeddingProvider   →  FastEmbedEmbeddingProvider,
                            SentenceTransformerEmbeddingProvider,
                            HashEmbeddingProvider
    IDocumentStore       →  SQLiteDocumentStore
    IJobQueue            →  InMemoryJobQueue
    ITextExtractor       →  FileTextExtractor
"""

from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.interfaces.embedding_provider import IEmbeddingProvider
from rfpsearch.interfaces.job_queue import IJobQueue, JobHandler
from rfpsearch.interfaces.text_extractor import ITextExtractor

__all__ = [
    "IDocumentStore",
    "IEmbeddingProvider",
    "IJobQueue",
    "ITextExtractor",
    "JobHandler",
]
