"""Ingestion orchestrator -- the handler for ``IngestJob``.

Moves one uploaded document through::

    uploaded → ingesting → (extract → normalize → chunk → insert) → chunks_pending

and then enqueues a high-priority :class:`EmbedChunksJob` for the new
chunks.  An enqueue failure at that last step is logged but does not fail
ingestion: the chunks are persisted as ``pending`` and the reconciliation
path (``rfpsearch reprocess``) picks them up later.

A retried job replaces the chunks an earlier attempt stored for the same
document, so queue retries never leave duplicates.
"""

from __future__ import annotations

from typing import Any

import structlog

from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.interfaces.job_queue import IJobQueue
from rfpsearch.interfaces.text_extractor import ITextExtractor
from rfpsearch.models.document import DocumentStatus
from rfpsearch.models.job import EmbedChunksJob, IngestJob, JobOptions
from rfpsearch.services.chunker import SegmentChunker
from rfpsearch.utils.errors import RFPSearchError
from rfpsearch.utils.text_normalizer import normalize_text

logger = structlog.get_logger(logger_name=__name__)

# New uploads jump ahead of backlog reprocessing.
UPLOAD_EMBED_PRIORITY = 10


class IngestionOrchestrator:
    """Turns an uploaded file into pending chunks and triggers their embedding."""

    def __init__(
        self,
        store: IDocumentStore,
        extractor: ITextExtractor,
        chunker: SegmentChunker,
        queue: IJobQueue,
        embed_job_options: JobOptions | None = None,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._chunker = chunker
        self._queue = queue
        self._embed_job_options = embed_job_options or JobOptions(priority=UPLOAD_EMBED_PRIORITY)

    async def handle(self, job: IngestJob) -> dict[str, Any]:
        """Process one ingest job.

        Returns
        -------
        dict
            ``{"document_id", "chunks", "embedding_job_id"}``; the job id is
            ``None`` if the embedding job could not be enqueued.

        Raises
        ------
        RFPSearchError
            On extraction or storage failure.  The document is marked
            ``failed`` before the error propagates to the queue.
        """
        document_id = job.document_id
        log = logger.bind(document_id=document_id)
        await self._store.update_document_status(document_id, DocumentStatus.INGESTING)

        try:
            raw_text = await self._extractor.extract_text(job.file_path)
            text = normalize_text(raw_text)
            chunks = self._chunker.chunk(text)
            chunk_ids = await self._store.insert_chunks(document_id, chunks)
        except RFPSearchError as exc:
            log.error("ingestion_failed", error=str(exc), error_type=type(exc).__name__)
            await self._store.update_document_status(document_id, DocumentStatus.FAILED)
            raise

        await self._store.update_document_status(document_id, DocumentStatus.CHUNKS_PENDING)
        log.info(
            "document_chunked",
            raw_characters=len(raw_text),
            normalized_characters=len(text),
            chunks=len(chunk_ids),
        )

        embedding_job_id: str | None = None
        if chunk_ids:
            try:
                embedding_job_id = await self._queue.enqueue(
                    EmbedChunksJob(chunk_ids=chunk_ids),
                    self._embed_job_options,
                )
            except RFPSearchError as exc:
                log.warning("embedding_enqueue_failed", error=str(exc), chunks=len(chunk_ids))
        else:
            log.warning("document_produced_no_chunks")

        return {
            "document_id": document_id,
            "chunks": len(chunk_ids),
            "embedding_job_id": embedding_job_id,
        }
