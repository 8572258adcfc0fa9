"""Abstract base class for the background job queue.

The queue delivers each job at least once, retrying a failing handler with
exponential backoff up to the configured number of attempts.  Handlers are
registered per payload ``kind``; the queue knows nothing about what a job
does.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from rfpsearch.models.job import JobOptions, JobPayload, JobRecord

JobHandler = Callable[[JobPayload], Awaitable[dict[str, Any]]]


# Concrete implementation: InMemoryJobQueue (rfpsearch/providers/queue/)
class IJobQueue(ABC):
    """Contract for enqueueing jobs and running their handlers."""

    @abstractmethod
    def register_handler(self, kind: str, handler: JobHandler, concurrency: int = 1) -> None:
        """Route jobs whose payload ``kind`` matches to *handler*.

        Parameters
        ----------
        kind:
            Payload discriminator, e.g. ``"ingest"`` or ``"embed_chunks"``.
        handler:
            Coroutine function receiving the payload and returning a result dict.
        concurrency:
            Maximum number of jobs of this kind running at once.
        """

    @abstractmethod
    async def enqueue(self, payload: JobPayload, options: JobOptions | None = None) -> str:
        """Add a job and return its id.

        Raises
        ------
        rfpsearch.utils.errors.QueueError
            If no handler is registered for the payload kind or the queue is closed.
        """

    @abstractmethod
    async def start(self) -> None:
        """Start the worker tasks."""

    @abstractmethod
    async def drain(self) -> None:
        """Wait until every queued, delayed and running job has finished."""

    @abstractmethod
    async def stop(self) -> None:
        """Cancel the workers.  Jobs not yet started are dropped."""

    @abstractmethod
    def get_job(self, job_id: str) -> JobRecord | None:
        """Return the latest snapshot of a job, if still retained."""

    @abstractmethod
    def get_counts(self) -> dict[str, int]:
        """Return the number of retained jobs per state."""
