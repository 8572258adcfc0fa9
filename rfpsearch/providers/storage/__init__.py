"""Storage providers."""

from rfpsearch.providers.storage.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
