"""Keeps a running stage's job fresh so it is not mistaken for a stale one."""

import asyncio
import logging
from datetime import timedelta

from assessor.errors.exceptions import ConcurrentModificationError, NotFoundError
from assessor.models.job import AssessmentJob
from assessor.pipeline.job_store import JobStore

logger = logging.getLogger(__name__)


class JobHeartbeat:
    """Touches the job every ``interval`` while the ``async with`` body runs.

    ``job`` always holds the latest snapshot, so the stage's closing
    transition must be made from ``heartbeat.job``. Stopping waits for an
    in-flight touch to finish instead of cancelling it mid-write.
    """

    def __init__(self, store: JobStore, job: AssessmentJob, interval: timedelta):
        self.store = store
        self.job = job
        self.interval = interval.total_seconds()
        self._stopped = asyncio.Event()
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> "JobHeartbeat":
        self._task = asyncio.create_task(self._beat())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._stopped.set()
        if self._task is not None:
            await self._task

    async def _beat(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
                return
            except asyncio.TimeoutError:
                pass
            try:
                self.job = await self.store.touch(self.job)
            except (ConcurrentModificationError, NotFoundError):
                logger.warning("Job %s moved on without this runner; heartbeat stopped", self.job.id)
                return
            except Exception:
                logger.exception("Heartbeat for job %s failed; retrying next interval", self.job.id)
