"""Unit tests for InMemoryJobQueue and the job payload models."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError

from rfpsearch.models.job import (
    EmbedChunksJob,
    EmbedDocumentJob,
    IngestJob,
    JobOptions,
    JobState,
    parse_job_payload,
)
from rfpsearch.providers.queue import InMemoryJobQueue
from rfpsearch.utils.errors import QueueError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_queue(**option_overrides) -> InMemoryJobQueue:
    options = JobOptions(backoff_base_seconds=0.0, **option_overrides)
    return InMemoryJobQueue(default_options=options)


def _ingest(doc: str = "doc-1") -> IngestJob:
    return IngestJob(document_id=doc, file_path=f"/tmp/{doc}.pdf")


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------


class TestJobPayloads:
    def test_parse_dispatches_on_kind(self) -> None:
        assert isinstance(
            parse_job_payload({"kind": "ingest", "document_id": "d", "file_path": "/f"}),
            IngestJob,
        )
        assert isinstance(
            parse_job_payload({"kind": "embed_chunks", "chunk_ids": ["c1"]}),
            EmbedChunksJob,
        )
        assert isinstance(
            parse_job_payload({"kind": "embed_document", "document_id": "d"}),
            EmbedDocumentJob,
        )

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            parse_job_payload({"kind": "transcode", "document_id": "d"})

    def test_embed_chunks_requires_ids(self) -> None:
        with pytest.raises(PydanticValidationError):
            EmbedChunksJob(chunk_ids=[])

    def test_batch_ids_are_unique(self) -> None:
        a = EmbedDocumentJob(document_id="d")
        b = EmbedDocumentJob(document_id="d")
        assert a.batch_id != b.batch_id

    def test_backoff_delay_doubles(self) -> None:
        options = JobOptions(backoff_base_seconds=2.0)
        assert [options.backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


# ---------------------------------------------------------------------------
# Queue behaviour
# ---------------------------------------------------------------------------


class TestEnqueue:
    async def test_enqueue_without_handler_raises(self) -> None:
        queue = _make_queue()
        with pytest.raises(QueueError):
            await queue.enqueue(_ingest())

    async def test_enqueue_after_stop_raises(self) -> None:
        queue = _make_queue()

        async def handler(job):
            return {}

        queue.register_handler("ingest", handler)
        await queue.start()
        await queue.stop()
        with pytest.raises(QueueError):
            await queue.enqueue(_ingest())

    async def test_register_after_start_raises(self) -> None:
        queue = _make_queue()
        await queue.start()
        try:
            with pytest.raises(QueueError):
                queue.register_handler("ingest", lambda job: None)
        finally:
            await queue.stop()

    async def test_drain_before_start_with_pending_jobs_raises(self) -> None:
        queue = _make_queue()

        async def handler(job):
            return {}

        queue.register_handler("ingest", handler)
        await queue.enqueue(_ingest())
        with pytest.raises(QueueError):
            await queue.drain()

    async def test_drain_on_idle_queue_returns(self) -> None:
        queue = _make_queue()
        await queue.drain()


class TestProcessing:
    async def test_job_completes_with_result(self) -> None:
        queue = _make_queue()

        async def handler(job: IngestJob):
            return {"document_id": job.document_id}

        queue.register_handler("ingest", handler)
        await queue.start()
        try:
            job_id = await queue.enqueue(_ingest("doc-9"))
            await queue.drain()
            record = queue.get_job(job_id)
        finally:
            await queue.stop()

        assert record.state == JobState.COMPLETED
        assert record.result == {"document_id": "doc-9"}
        assert record.attempts_made == 1
        assert record.name == "ingest-document"

    async def test_higher_priority_runs_first(self) -> None:
        queue = _make_queue()
        order: list[str] = []

        async def handler(job: IngestJob):
            order.append(job.document_id)
            return {}

        queue.register_handler("ingest", handler, concurrency=1)
        await queue.enqueue(_ingest("low"), JobOptions(priority=1))
        await queue.enqueue(_ingest("first-high"), JobOptions(priority=10))
        await queue.enqueue(_ingest("second-high"), JobOptions(priority=10))
        await queue.start()
        try:
            await queue.drain()
        finally:
            await queue.stop()

        assert order == ["first-high", "second-high", "low"]

    async def test_retries_until_success(self) -> None:
        queue = _make_queue(attempts=3)
        calls = {"n": 0}

        async def flaky(job):
            calls["n"] += 1
            if calls["n"] < 3:
                raise RuntimeError("transient")
            return {"ok": True}

        queue.register_handler("ingest", flaky)
        await queue.start()
        try:
            job_id = await queue.enqueue(_ingest())
            await asyncio.wait_for(queue.drain(), timeout=5)
            record = queue.get_job(job_id)
        finally:
            await queue.stop()

        assert calls["n"] == 3
        assert record.state == JobState.COMPLETED
        assert record.attempts_made == 3

    async def test_exhausted_attempts_mark_failed(self) -> None:
        queue = _make_queue(attempts=2)

        async def broken(job):
            raise RuntimeError("always broken")

        queue.register_handler("ingest", broken)
        await queue.start()
        try:
            job_id = await queue.enqueue(_ingest())
            await asyncio.wait_for(queue.drain(), timeout=5)
            record = queue.get_job(job_id)
            counts = queue.get_counts()
        finally:
            await queue.stop()

        assert record.state == JobState.FAILED
        assert record.attempts_made == 2
        assert "always broken" in record.error
        assert counts["failed"] == 1

    async def test_completed_records_are_trimmed(self) -> None:
        queue = _make_queue(remove_on_complete=2)

        async def handler(job):
            return {}

        queue.register_handler("ingest", handler)
        await queue.start()
        try:
            ids = [await queue.enqueue(_ingest(f"d{i}")) for i in range(4)]
            await queue.drain()
        finally:
            await queue.stop()

        assert queue.get_job(ids[0]) is None
        assert queue.get_job(ids[1]) is None
        assert queue.get_job(ids[3]).state == JobState.COMPLETED
        assert queue.get_counts()["completed"] == 2

    async def test_kinds_have_separate_workers(self) -> None:
        queue = _make_queue()
        seen: list[str] = []

        async def ingest(job):
            seen.append(job.kind)
            return {}

        async def embed(job):
            seen.append(job.kind)
            return {}

        queue.register_handler("ingest", ingest)
        queue.register_handler("embed_chunks", embed, concurrency=2)
        await queue.start()
        try:
            await queue.enqueue(_ingest())
            await queue.enqueue(EmbedChunksJob(chunk_ids=["c1"]))
            await queue.drain()
        finally:
            await queue.stop()

        assert sorted(seen) == ["embed_chunks", "ingest"]
