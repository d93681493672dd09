"""In-process queue of assessment job ids awaiting the background worker."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class JobQueue:
    """Unbounded FIFO of job ids. Duplicates are harmless: the job CAS admits one runner."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()

    async def enqueue(self, job_id: str) -> None:
        await self._queue.put(job_id)
        logger.info("Queued assessment job %s (depth=%d)", job_id, self._queue.qsize())

    async def dequeue(self) -> str:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def __len__(self) -> int:
        return self._queue.qsize()
