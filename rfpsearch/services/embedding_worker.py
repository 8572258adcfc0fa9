"""Embedding worker -- the handler for ``EmbedChunksJob`` and ``EmbedDocumentJob``.

For either payload shape the worker claims the chunks that are still
``pending`` (already-completed ones are skipped silently), embeds them in
batches through the shared :class:`EmbeddingService`, and writes every
outcome back in one transaction.  Outcomes for chunks another run has
re-claimed in the meantime are dropped by the store.  Per-chunk embedding
failures are stored as ``failed`` with the error message; they are not
retried by the queue.
"""

from __future__ import annotations

from typing import Any

import structlog

from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.models.chunk import EmbeddingUpdate, StoredChunk
from rfpsearch.models.job import EmbedChunksJob, EmbedDocumentJob
from rfpsearch.services.embedding_service import EmbeddingService
from rfpsearch.utils.errors import InvalidInputError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingWorker:
    """Embeds pending chunks and persists the results."""

    def __init__(self, store: IDocumentStore, embedding_service: EmbeddingService) -> None:
        self._store = store
        self._embeddings = embedding_service

    async def handle(self, job: EmbedChunksJob | EmbedDocumentJob) -> dict[str, Any]:
        match job:
            case EmbedChunksJob(chunk_ids=chunk_ids, batch_id=batch_id):
                chunks = await self._store.claim_pending_chunks(batch_id, chunk_ids=chunk_ids)
            case EmbedDocumentJob(document_id=document_id, batch_id=batch_id):
                chunks = await self._store.claim_pending_chunks(batch_id, document_id=document_id)
            case _:
                raise InvalidInputError(message=f"unsupported embedding job: {type(job).__name__}")

        return await self.process(chunks, batch_id)

    async def process(self, chunks: list[StoredChunk], batch_id: str) -> dict[str, Any]:
        """Embed *chunks* and apply all outcomes in one write.

        Returns ``{"processed", "success", "errors", "batch_id"}``.
        """
        if not chunks:
            logger.info("embedding_job_noop", batch_id=batch_id)
            return {"processed": 0, "success": 0, "errors": 0, "batch_id": batch_id}

        results = await self._embeddings.embed_batch([c.text for c in chunks])
        meta = self._embeddings.get_model_metadata()

        updates: list[EmbeddingUpdate] = []
        for chunk, result in zip(chunks, results):
            if result.ok:
                updates.append(
                    EmbeddingUpdate(
                        chunk_id=chunk.id,
                        success=True,
                        batch_id=batch_id,
                        embedding=result.embedding,
                        embed_model=meta.name,
                        embed_version=meta.version,
                    )
                )
            else:
                updates.append(
                    EmbeddingUpdate(
                        chunk_id=chunk.id,
                        success=False,
                        batch_id=batch_id,
                        error=result.error,
                    )
                )

        written = await self._store.apply_embedding_updates(updates)
        if written < len(updates):
            # another run re-claimed these chunks after ours went stale
            logger.warning(
                "embedding_updates_superseded",
                batch_id=batch_id,
                dropped=len(updates) - written,
            )

        succeeded = sum(1 for u in updates if u.success)
        summary = {
            "processed": len(updates),
            "success": succeeded,
            "errors": len(updates) - succeeded,
            "batch_id": batch_id,
        }
        logger.info("embedding_job_complete", model=meta.name, **summary)
        return summary
