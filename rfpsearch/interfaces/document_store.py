"""Abstract base class for the document/chunk/search-log store.

The store is the single shared mutable resource of the pipeline:

    - the ingestion orchestrator inserts chunks (insert-only),
    - the embedding worker updates embedding fields (update-only),
    - the search path reads completed chunks (read-only).

Implementations must provide a keyword (full-text) index and a vector
similarity search over completed chunks of non-deleted documents, and must
wrap bulk chunk inserts and embedding batch updates in one transaction each.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from rfpsearch.models.chunk import ChunkStats, EmbeddingUpdate, StoredChunk, TextChunk
from rfpsearch.models.document import Document, DocumentStatus, NewDocument
from rfpsearch.models.search import (
    PopularQuery,
    SearchHit,
    SearchLogEntry,
    SearchTypeAnalytics,
)


# Concrete implementation: SQLiteDocumentStore (rfpsearch/providers/storage/)
class IDocumentStore(ABC):
    """Contract for document, chunk and search-log persistence."""

    # -- Lifecycle ------------------------------------------------------------

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indexes if they do not exist."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` if the store answers a trivial query."""

    # -- Documents ------------------------------------------------------------

    @abstractmethod
    async def insert_document(self, document: NewDocument) -> Document:
        """Persist a new document and return it with its generated id.

        Raises
        ------
        rfpsearch.utils.errors.DuplicateDocumentError
            A non-deleted document with the same filename already exists for
            the client.
        """

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` if it does not exist."""

    @abstractmethod
    async def document_exists(self, filename: str, client_name: str) -> bool:
        """Return ``True`` if a non-deleted document with this filename exists for the client."""

    @abstractmethod
    async def update_document_status(self, document_id: str, status: DocumentStatus) -> None:
        """Set the ingestion status of a document."""

    @abstractmethod
    async def soft_delete_document(self, document_id: str) -> bool:
        """Mark a document deleted; its chunks drop out of search.  Returns ``False`` if unknown."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Remove a document row and its chunks outright.  Returns ``False`` if unknown."""

    # -- Chunks ---------------------------------------------------------------

    @abstractmethod
    async def insert_chunks(self, document_id: str, chunks: list[TextChunk]) -> list[str]:
        """Replace the chunks of a document in one transaction, status ``pending``.

        Chunks left by an earlier attempt at the same document are deleted
        first.  ``chunk_index`` is the position in *chunks*.  Returns the new
        chunk ids in the same order.

        Raises
        ------
        rfpsearch.utils.errors.StorageError
            If the transaction fails; no chunk is persisted in that case.
        """

    @abstractmethod
    async def get_chunks_for_document(self, document_id: str) -> list[StoredChunk]:
        """Return every chunk of a document ordered by ``chunk_index``."""

    @abstractmethod
    async def claim_pending_chunks(
        self,
        batch_id: str,
        *,
        chunk_ids: list[str] | None = None,
        document_id: str | None = None,
    ) -> list[StoredChunk]:
        """Atomically claim and return pending chunks for one embedding run.

        Selects chunks still ``pending`` among *chunk_ids*, or among the
        chunks of *document_id*, that no other live batch holds.  Claimed
        chunks are tagged with *batch_id* in the same transaction, so two
        runs racing on the same chunks never both receive them.  A retry of
        the same batch re-claims its own chunks; claims older than the
        store's staleness window are released automatically.

        Exactly one of *chunk_ids* / *document_id* must be given.
        """

    @abstractmethod
    async def reset_failed_chunks(self, document_id: str | None = None) -> int:
        """Return failed chunks to ``pending`` so they can be re-embedded.  Returns the count."""

    @abstractmethod
    async def list_pending_chunk_ids(self) -> list[str]:
        """Return ids of all pending chunks, oldest first."""

    @abstractmethod
    async def apply_embedding_updates(self, updates: list[EmbeddingUpdate]) -> int:
        """Write a batch of embedding outcomes in one transaction.

        An outcome is written only while its chunk is still ``pending`` and is
        unclaimed or claimed by the outcome's ``batch_id``; outcomes for chunks
        another run has taken over are dropped.  Returns the number of rows
        updated.
        """

    @abstractmethod
    async def get_chunk_stats(self) -> ChunkStats:
        """Return chunk counts grouped by embedding status."""

    # -- Search ---------------------------------------------------------------

    @abstractmethod
    async def keyword_search(self, query: str, limit: int) -> list[SearchHit]:
        """Full-text search over completed chunks; ``score`` normalized to [0, 1]."""

    @abstractmethod
    async def vector_search(self, embedding: list[float], limit: int) -> list[SearchHit]:
        """Nearest-neighbour search over completed chunks; ``score = 1 - cosine_distance``."""

    # -- Search logs ----------------------------------------------------------

    @abstractmethod
    async def insert_search_log(self, entry: SearchLogEntry) -> None:
        """Record one search."""

    @abstractmethod
    async def get_search_analytics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[SearchTypeAnalytics]:
        """Aggregate search logs per search type within an optional window."""

    @abstractmethod
    async def get_popular_queries(self, limit: int = 10) -> list[PopularQuery]:
        """Return the most frequent queries, most frequent first."""

    async def close(self) -> None:  # noqa: B027  optional hook
        """Release connections.  Default: nothing to release."""
