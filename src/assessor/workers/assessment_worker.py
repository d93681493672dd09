"""Background worker that drives queued assessment jobs."""

import asyncio
import logging

from assessor.errors.exceptions import (
    ConcurrentModificationError,
    InvalidJobStateError,
    NotFoundError,
    OperationCancelledError,
)
from assessor.models.enums import JobStatus
from assessor.models.job import AssessmentJob
from assessor.pipeline.cancellation import CancellationSignal
from assessor.pipeline.orchestrator import PipelineOrchestrator
from assessor.workers.queue import JobQueue

logger = logging.getLogger(__name__)


class AssessmentWorker:
    """Pulls job ids off the queue and runs each as its own task.

    Different jobs run concurrently up to ``concurrency``; the job store's
    compare-and-set keeps two runs of the same job from overlapping.
    """

    def __init__(self, orchestrator: PipelineOrchestrator, queue: JobQueue, concurrency: int = 4):
        self.orchestrator = orchestrator
        self.queue = queue
        self._slots = asyncio.Semaphore(concurrency)
        self._cancel = CancellationSignal()
        self._tasks: set[asyncio.Task] = set()

    async def process(self, job_id: str) -> AssessmentJob | None:
        """Start or resume one job; failures are recorded on the job, not raised."""
        try:
            job = await self.orchestrator.store.require(job_id)
            if job.status == JobStatus.PENDING:
                job = await self.orchestrator.start(job_id, self._cancel)
            else:
                job = await self.orchestrator.resume(job_id, self._cancel)
        except NotFoundError:
            logger.warning("Job %s was deleted before it could run", job_id)
            return None
        except ConcurrentModificationError:
            logger.info("Job %s is already being processed elsewhere", job_id)
            return None
        except InvalidJobStateError as exc:
            logger.warning("Skipping job %s: %s", job_id, exc.message)
            return None
        except OperationCancelledError:
            logger.info("Job %s interrupted by worker shutdown", job_id)
            return None
        except Exception:
            logger.exception("Worker crashed while processing job %s", job_id)
            return None
        logger.info("Job %s finished in %s", job_id, job.status.value)
        return job

    async def _run_one(self, job_id: str) -> None:
        try:
            async with self._slots:
                await self.process(job_id)
        finally:
            self.queue.task_done()

    async def run(self) -> None:
        """Consume the queue until cancelled."""
        logger.info("Assessment worker started")
        try:
            while True:
                job_id = await self.queue.dequeue()
                task = asyncio.create_task(self._run_one(job_id))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            self._cancel.cancel("worker shutting down")
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            logger.info("Assessment worker stopped")
