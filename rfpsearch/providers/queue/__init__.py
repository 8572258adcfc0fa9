"""Job queue providers."""

from rfpsearch.providers.queue.in_memory_job_queue import InMemoryJobQueue

__all__ = ["InMemoryJobQueue"]
