"""In-process asyncio job queue with priorities, retries and bounded workers.

Each payload ``kind`` gets its own priority queue and its own pool of
worker tasks, sized by the ``concurrency`` passed to
:meth:`InMemoryJobQueue.register_handler`.  Within a kind, jobs with a
higher ``priority`` run first and equal priorities run in enqueue order.

A failing handler is retried after ``backoff_base_seconds * 2**(n-1)``
seconds until ``attempts`` is exhausted, after which the job is marked
``failed``.  Finished job records are retained per kind up to the
``remove_on_complete`` / ``remove_on_fail`` limits of each job.

The queue lives in the current process only: jobs still waiting when the
process exits are lost.  Durability comes from the store instead -- chunks
stay ``pending`` until embedded, and ``rfpsearch reprocess`` re-enqueues them.
"""

from __future__ import annotations

import asyncio
import itertools
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any

import structlog

from rfpsearch.interfaces.job_queue import IJobQueue, JobHandler
from rfpsearch.models.job import JOB_NAMES, JobOptions, JobPayload, JobRecord, JobState
from rfpsearch.utils.errors import QueueError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER = "in_memory_queue"


class InMemoryJobQueue(IJobQueue):
    """Asyncio-based :class:`IJobQueue` for a single process."""

    def __init__(self, default_options: JobOptions | None = None) -> None:
        self._default_options = default_options or JobOptions()
        self._handlers: dict[str, tuple[JobHandler, int]] = {}
        self._queues: dict[str, asyncio.PriorityQueue[tuple[int, int, str]]] = {}
        self._records: dict[str, JobRecord] = {}
        self._completed: dict[str, deque[str]] = {}
        self._failed: dict[str, deque[str]] = {}
        self._workers: list[asyncio.Task[None]] = []
        self._retry_tasks: set[asyncio.Task[None]] = set()
        self._sequence = itertools.count()
        self._outstanding = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._running = False
        self._closed = False

    # ------------------------------------------------------------------
    # Registration / enqueue
    # ------------------------------------------------------------------

    def register_handler(self, kind: str, handler: JobHandler, concurrency: int = 1) -> None:
        if self._running:
            raise QueueError(
                message=f"cannot register '{kind}' after the queue has started",
                provider_name=_PROVIDER,
            )
        self._handlers[kind] = (handler, max(1, concurrency))
        self._queues.setdefault(kind, asyncio.PriorityQueue())
        self._completed.setdefault(kind, deque())
        self._failed.setdefault(kind, deque())
        logger.debug("job_handler_registered", kind=kind, concurrency=max(1, concurrency))

    async def enqueue(self, payload: JobPayload, options: JobOptions | None = None) -> str:
        if self._closed:
            raise QueueError(message="queue is stopped", provider_name=_PROVIDER)
        if payload.kind not in self._handlers:
            raise QueueError(
                message=f"no handler registered for job kind '{payload.kind}'",
                provider_name=_PROVIDER,
            )

        options = options or self._default_options
        job_id = str(uuid.uuid4())
        self._records[job_id] = JobRecord(
            id=job_id,
            name=JOB_NAMES.get(payload.kind, payload.kind),
            payload=payload,
            options=options,
        )
        self._outstanding += 1
        self._idle.clear()
        self._put(payload.kind, options.priority, job_id)

        logger.info(
            "job_enqueued",
            job_id=job_id,
            kind=payload.kind,
            priority=options.priority,
        )
        return job_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for kind, (handler, concurrency) in self._handlers.items():
            for n in range(concurrency):
                task = asyncio.create_task(
                    self._worker(kind, handler),
                    name=f"job-worker-{kind}-{n}",
                )
                self._workers.append(task)
        logger.info("job_queue_started", workers=len(self._workers), kinds=sorted(self._handlers))

    async def drain(self) -> None:
        if not self._running and self._outstanding:
            raise QueueError(message="queue has pending jobs but is not started", provider_name=_PROVIDER)
        await self._idle.wait()

    async def stop(self) -> None:
        self._closed = True
        tasks = [*self._workers, *self._retry_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers.clear()
        self._retry_tasks.clear()
        self._running = False
        logger.info("job_queue_stopped", dropped=self._outstanding)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> JobRecord | None:
        return self._records.get(job_id)

    def get_counts(self) -> dict[str, int]:
        counts = {state.value: 0 for state in JobState}
        for record in self._records.values():
            counts[record.state.value] += 1
        return counts

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _put(self, kind: str, priority: int, job_id: str) -> None:
        # PriorityQueue pops the smallest tuple: negate priority, then FIFO by sequence.
        self._queues[kind].put_nowait((-priority, next(self._sequence), job_id))

    def _update(self, job_id: str, **changes: Any) -> JobRecord:
        record = self._records[job_id].model_copy(update=changes)
        self._records[job_id] = record
        return record

    async def _worker(self, kind: str, handler: JobHandler) -> None:
        queue = self._queues[kind]
        while True:
            _, _, job_id = await queue.get()
            try:
                await self._run(job_id, handler)
            finally:
                queue.task_done()

    async def _run(self, job_id: str, handler: JobHandler) -> None:
        record = self._update(job_id, state=JobState.ACTIVE)
        attempt = record.attempts_made + 1
        kind = record.payload.kind

        with structlog.contextvars.bound_contextvars(job_id=job_id, job_kind=kind, attempt=attempt):
            try:
                result = await handler(record.payload)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._on_failure(job_id, attempt, exc)
                return

            self._update(
                job_id,
                state=JobState.COMPLETED,
                attempts_made=attempt,
                result=result,
                error=None,
                finished_at=datetime.now(timezone.utc),
            )
            logger.info("job_completed", result=result)
            self._retain(self._completed[kind], job_id, record.options.remove_on_complete)
            self._finish()

    def _on_failure(self, job_id: str, attempt: int, exc: Exception) -> None:
        record = self._records[job_id]
        options = record.options

        if attempt < options.attempts and not self._closed:
            delay = options.backoff_delay(attempt)
            self._update(job_id, state=JobState.DELAYED, attempts_made=attempt, error=str(exc))
            logger.warning("job_retry_scheduled", error=str(exc), delay_seconds=delay)
            task = asyncio.create_task(self._requeue_after(job_id, delay))
            self._retry_tasks.add(task)
            task.add_done_callback(self._retry_tasks.discard)
            return

        self._update(
            job_id,
            state=JobState.FAILED,
            attempts_made=attempt,
            error=str(exc),
            finished_at=datetime.now(timezone.utc),
        )
        logger.error("job_failed", error=str(exc), error_type=type(exc).__name__)
        self._retain(self._failed[record.payload.kind], job_id, options.remove_on_fail)
        self._finish()

    async def _requeue_after(self, job_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        record = self._update(job_id, state=JobState.WAITING)
        self._put(record.payload.kind, record.options.priority, job_id)

    def _retain(self, finished: deque[str], job_id: str, keep: int) -> None:
        finished.append(job_id)
        while len(finished) > keep:
            self._records.pop(finished.popleft(), None)

    def _finish(self) -> None:
        self._outstanding -= 1
        if self._outstanding <= 0:
            self._outstanding = 0
            self._idle.set()
