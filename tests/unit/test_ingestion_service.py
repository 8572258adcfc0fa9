"""Unit tests for IngestionOrchestrator and the reprocess pass."""

from __future__ import annotations

from unittest.mock import AsyncMock, call

import pytest

from rfpsearch.models.document import DocumentStatus
from rfpsearch.models.job import EmbedChunksJob, IngestJob, JobOptions
from rfpsearch.services.chunker import SegmentChunker
from rfpsearch.services.ingestion_service import UPLOAD_EMBED_PRIORITY, IngestionOrchestrator
from rfpsearch.services.reconciliation import REPROCESS_PRIORITY, enqueue_pending_chunks
from rfpsearch.utils.errors import ExtractionError, QueueError, StorageError

_JOB = IngestJob(document_id="doc-1", file_path="uploads/Acme/1700000000000-rfp.pdf")


def _make_orchestrator(text: str = "1.1 Scope\nProvide managed services.\n\n1.2 Terms\nNet 30."):
    store = AsyncMock()
    store.insert_chunks.side_effect = lambda doc_id, chunks: [f"c{i}" for i in range(len(chunks))]
    extractor = AsyncMock()
    extractor.extract_text.return_value = text
    queue = AsyncMock()
    queue.enqueue.return_value = "job-42"
    orchestrator = IngestionOrchestrator(
        store=store,
        extractor=extractor,
        chunker=SegmentChunker(max_tokens=500, overlap=50),
        queue=queue,
    )
    return orchestrator, store, extractor, queue


class TestIngestionOrchestrator:
    async def test_happy_path(self) -> None:
        orchestrator, store, extractor, queue = _make_orchestrator()

        result = await orchestrator.handle(_JOB)

        assert result == {"document_id": "doc-1", "chunks": 2, "embedding_job_id": "job-42"}
        extractor.extract_text.assert_awaited_once_with(_JOB.file_path)
        assert store.update_document_status.await_args_list == [
            call("doc-1", DocumentStatus.INGESTING),
            call("doc-1", DocumentStatus.CHUNKS_PENDING),
        ]

        payload, options = queue.enqueue.await_args.args
        assert isinstance(payload, EmbedChunksJob)
        assert payload.chunk_ids == ["c0", "c1"]
        assert options.priority == UPLOAD_EMBED_PRIORITY

    async def test_text_is_normalized_before_chunking(self) -> None:
        orchestrator, store, _, _ = _make_orchestrator("Intro “quoted”\nPage 1 of 9\nBody")

        await orchestrator.handle(_JOB)

        chunks = store.insert_chunks.call_args.args[1]
        assert chunks[0].text == 'Intro "quoted"'
        assert chunks[1].text == "Body"

    async def test_extraction_failure_marks_document_failed(self) -> None:
        orchestrator, store, extractor, queue = _make_orchestrator()
        extractor.extract_text.side_effect = ExtractionError(message="corrupt pdf", provider_name="pdf")

        with pytest.raises(ExtractionError):
            await orchestrator.handle(_JOB)

        assert store.update_document_status.await_args_list[-1] == call("doc-1", DocumentStatus.FAILED)
        store.insert_chunks.assert_not_awaited()
        queue.enqueue.assert_not_awaited()

    async def test_storage_failure_marks_document_failed(self) -> None:
        orchestrator, store, _, _ = _make_orchestrator()
        store.insert_chunks.side_effect = StorageError(message="disk full")

        with pytest.raises(StorageError):
            await orchestrator.handle(_JOB)

        assert store.update_document_status.await_args_list[-1] == call("doc-1", DocumentStatus.FAILED)

    async def test_enqueue_failure_does_not_fail_ingestion(self) -> None:
        orchestrator, store, _, queue = _make_orchestrator()
        queue.enqueue.side_effect = QueueError(message="queue is stopped")

        result = await orchestrator.handle(_JOB)

        assert result["embedding_job_id"] is None
        assert result["chunks"] == 2
        assert store.update_document_status.await_args_list[-1] == call(
            "doc-1", DocumentStatus.CHUNKS_PENDING
        )

    async def test_empty_document_enqueues_nothing(self) -> None:
        orchestrator, _, _, queue = _make_orchestrator("   ")

        result = await orchestrator.handle(_JOB)

        assert result["chunks"] == 0
        queue.enqueue.assert_not_awaited()


class TestEnqueuePendingChunks:
    async def test_batches_pending_ids(self) -> None:
        store = AsyncMock()
        store.list_pending_chunk_ids.return_value = [f"c{i}" for i in range(120)]
        queue = AsyncMock()

        summary = await enqueue_pending_chunks(store, queue, batch_size=50)

        assert summary == {"reset": 0, "pending": 120, "jobs": 3}
        sizes = [len(c.args[0].chunk_ids) for c in queue.enqueue.await_args_list]
        assert sizes == [50, 50, 20]
        assert queue.enqueue.await_args_list[0].args[0].chunk_ids[0] == "c0"
        assert all(c.args[1].priority == REPROCESS_PRIORITY for c in queue.enqueue.await_args_list)
        store.reset_failed_chunks.assert_not_awaited()

    async def test_include_failed_resets_first(self) -> None:
        store = AsyncMock()
        store.reset_failed_chunks.return_value = 4
        store.list_pending_chunk_ids.return_value = ["c1"]
        queue = AsyncMock()

        summary = await enqueue_pending_chunks(
            store, queue, options=JobOptions(priority=1), include_failed=True
        )

        assert summary == {"reset": 4, "pending": 1, "jobs": 1}
        assert queue.enqueue.await_args.args[1].priority == 1

    async def test_nothing_pending(self) -> None:
        store = AsyncMock()
        store.list_pending_chunk_ids.return_value = []
        queue = AsyncMock()

        summary = await enqueue_pending_chunks(store, queue)

        assert summary == {"reset": 0, "pending": 0, "jobs": 0}
        queue.enqueue.assert_not_awaited()
