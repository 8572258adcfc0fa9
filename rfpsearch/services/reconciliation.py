"""Re-enqueue embedding for chunks left ``pending``.

Chunks stay ``pending`` when the embedding job for them was never enqueued
(enqueue failure after ingestion) or was lost with its process.  This pass
lists them oldest-first and enqueues them in fixed-size embedding jobs at
low priority, so fresh uploads still go first.
"""

from __future__ import annotations

from typing import Any

import structlog

from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.interfaces.job_queue import IJobQueue
from rfpsearch.models.job import EmbedChunksJob, JobOptions

logger = structlog.get_logger(logger_name=__name__)

REPROCESS_BATCH_SIZE = 50
REPROCESS_PRIORITY = 2


async def enqueue_pending_chunks(
    store: IDocumentStore,
    queue: IJobQueue,
    batch_size: int = REPROCESS_BATCH_SIZE,
    options: JobOptions | None = None,
    include_failed: bool = False,
) -> dict[str, Any]:
    """Enqueue every pending chunk in embedding jobs of *batch_size* ids.

    With *include_failed*, chunks whose embedding failed are first returned
    to ``pending`` so they are picked up too.

    Returns ``{"reset", "pending", "jobs"}``.
    """
    options = options or JobOptions(priority=REPROCESS_PRIORITY)
    batch_size = max(1, batch_size)
    reset = await store.reset_failed_chunks() if include_failed else 0

    pending_ids = await store.list_pending_chunk_ids()
    if not pending_ids:
        logger.info("reprocess_nothing_pending", reset=reset)
        return {"reset": reset, "pending": 0, "jobs": 0}

    jobs = 0
    for start in range(0, len(pending_ids), batch_size):
        batch = pending_ids[start : start + batch_size]
        await queue.enqueue(EmbedChunksJob(chunk_ids=batch), options)
        jobs += 1

    logger.info(
        "reprocess_enqueued",
        pending=len(pending_ids),
        jobs=jobs,
        batch_size=batch_size,
        priority=options.priority,
        reset=reset,
    )
    return {"reset": reset, "pending": len(pending_ids), "jobs": jobs}
