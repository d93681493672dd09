"""Drives assessment jobs through generation, estimation and finalize.

Each stage function returns a StageSucceeded or StageFailed value; only the
orchestrator turns those into job transitions. Collaborator failures become
failure states on the job. Cancellation and lost compare-and-set races are
raised to the caller with the job left untouched.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Generic, TypeVar

from assessor.errors.exceptions import (
    ConcurrentModificationError,
    ExtractionError,
    GatewayError,
    InvalidJobStateError,
    OperationCancelledError,
)
from assessor.logging_config import job_log_context
from assessor.models.assessment import (
    ColumnEstimates,
    DraftSections,
    ProjectAssessment,
    build_assessment,
)
from assessor.models.enums import JobStatus
from assessor.models.job import AssessmentJob
from assessor.pipeline import state_machine
from assessor.pipeline.assembler import Malformed, ResultAssembler, resolve_columns
from assessor.pipeline.cancellation import CancellationSignal, never_cancelled
from assessor.pipeline.contracts import (
    AssessmentStorage,
    DocumentExtractor,
    LLMGateway,
    SourceDocument,
)
from assessor.pipeline.heartbeat import JobHeartbeat
from assessor.pipeline.job_store import JobStore
from assessor.pipeline.prompts import build_estimation_prompt, build_generation_prompt

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Settled statuses resume can pick up from. GenerationComplete covers a chain
# interrupted between the two stages; EstimationComplete retries finalize.
RESUMABLE_STATUSES = frozenset({
    JobStatus.FAILED_GENERATION,
    JobStatus.GENERATION_COMPLETE,
    JobStatus.FAILED_ESTIMATION,
    JobStatus.ESTIMATION_COMPLETE,
})


@dataclass(frozen=True)
class StageSucceeded(Generic[T]):
    artifact: T
    raw_response: str


@dataclass(frozen=True)
class StageFailed:
    message: str
    raw_response: str | None = None


class PipelineOrchestrator:
    def __init__(
        self,
        store: JobStore,
        extractor: DocumentExtractor,
        gateway: LLMGateway,
        storage: AssessmentStorage,
        assembler: ResultAssembler | None = None,
        stale_after: timedelta = timedelta(minutes=15),
        heartbeat_interval: timedelta | None = None,
    ):
        self.store = store
        self.extractor = extractor
        self.gateway = gateway
        self.storage = storage
        self.assembler = assembler or ResultAssembler(gateway)
        self.stale_after = stale_after
        # several touches land inside one stale window
        self.heartbeat_interval = heartbeat_interval or stale_after / 3

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def start(self, job_id: str, cancel: CancellationSignal | None = None) -> AssessmentJob:
        """Run a Pending job as far as it will go."""
        cancel = cancel or never_cancelled()
        job = await self.store.require(job_id)
        if job.status != JobStatus.PENDING:
            raise InvalidJobStateError(job.id, job.status.value, "start")
        cancel.raise_if_cancelled()
        job = await self.store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)
        return await self._run_generation(job, cancel)

    async def resume(self, job_id: str, cancel: CancellationSignal | None = None) -> AssessmentJob:
        """Re-enter the pipeline at the stage the job stopped in.

        Failed stages are retried with the artifacts already stored; nothing
        that succeeded before is run again. In-progress jobs are only taken
        over once they have gone stale; a live runner's heartbeat keeps its
        job fresh.
        """
        cancel = cancel or never_cancelled()
        job = await self.store.require(job_id)
        self.ensure_resumable(job)
        status = job.status

        cancel.raise_if_cancelled()
        if status in (JobStatus.FAILED_GENERATION, JobStatus.GENERATION_IN_PROGRESS):
            if status == JobStatus.GENERATION_IN_PROGRESS:
                logger.warning("Taking over stale job %s (last modified %s)", job.id, job.last_modified_at)
            job = await self.store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)
            return await self._run_generation(job, cancel)
        if status in (JobStatus.GENERATION_COMPLETE, JobStatus.FAILED_ESTIMATION, JobStatus.ESTIMATION_IN_PROGRESS):
            if status == JobStatus.ESTIMATION_IN_PROGRESS:
                logger.warning("Taking over stale job %s (last modified %s)", job.id, job.last_modified_at)
            job = await self.store.transition_to(job, JobStatus.ESTIMATION_IN_PROGRESS)
            return await self._run_estimation(job, cancel)
        return await self._finalize(job, cancel)

    def ensure_resumable(self, job: AssessmentJob) -> None:
        """Raise unless ``resume`` has a stage to re-enter for this job."""
        if job.status in state_machine.IN_PROGRESS_STATUSES:
            if not self.is_stale(job):
                raise ConcurrentModificationError(job.id, actual_status=job.status.value)
            return
        if job.status not in RESUMABLE_STATUSES:
            raise InvalidJobStateError(job.id, job.status.value, "resume")

    async def try_build_assessment(self, job_id: str) -> ProjectAssessment | None:
        """Read-only preview from whatever artifacts exist; never changes status."""
        job = await self.store.require(job_id)
        draft = job.generation_artifact
        if draft is None:
            return None
        estimates = job.estimation_artifact
        if estimates is None:
            columns = resolve_columns(job.template_snapshot.estimation_columns, [])
            estimates = ColumnEstimates.zeros(draft, columns)
        return build_assessment(job.template_id, job.template_name, job.project_name, draft, estimates)

    def is_stale(self, job: AssessmentJob) -> bool:
        return datetime.now(timezone.utc) - job.last_modified_at >= self.stale_after

    # ------------------------------------------------------------------
    # Stage drivers
    # ------------------------------------------------------------------

    async def _run_generation(self, job: AssessmentJob, cancel: CancellationSignal) -> AssessmentJob:
        with job_log_context(job.id, "generation"):
            try:
                async with JobHeartbeat(self.store, job, self.heartbeat_interval) as heartbeat:
                    outcome = await self._generate(job, cancel)
                job = heartbeat.job
                cancel.raise_if_cancelled()
                if isinstance(outcome, StageFailed):
                    return await self.store.transition_to(
                        job,
                        JobStatus.FAILED_GENERATION,
                        error_message=outcome.message,
                        raw_response=outcome.raw_response,
                    )
                job = await self.store.transition_to(
                    job,
                    JobStatus.GENERATION_COMPLETE,
                    generation_artifact=outcome.artifact,
                    raw_response=outcome.raw_response,
                )
            except (OperationCancelledError, asyncio.CancelledError):
                logger.warning("Generation cancelled; job %s left in %s", job.id, job.status.value)
                raise

        cancel.raise_if_cancelled()
        job = await self.store.transition_to(job, JobStatus.ESTIMATION_IN_PROGRESS)
        return await self._run_estimation(job, cancel)

    async def _run_estimation(self, job: AssessmentJob, cancel: CancellationSignal) -> AssessmentJob:
        with job_log_context(job.id, "estimation"):
            try:
                async with JobHeartbeat(self.store, job, self.heartbeat_interval) as heartbeat:
                    outcome = await self._estimate(job, cancel)
                job = heartbeat.job
                cancel.raise_if_cancelled()
                if isinstance(outcome, StageFailed):
                    return await self.store.transition_to(
                        job,
                        JobStatus.FAILED_ESTIMATION,
                        error_message=outcome.message,
                        raw_response=outcome.raw_response,
                    )
                job = await self.store.transition_to(
                    job,
                    JobStatus.ESTIMATION_COMPLETE,
                    estimation_artifact=outcome.artifact,
                    raw_response=outcome.raw_response,
                )
            except (OperationCancelledError, asyncio.CancelledError):
                logger.warning("Estimation cancelled; job %s left in %s", job.id, job.status.value)
                raise

        return await self._finalize(job, cancel)

    async def _finalize(self, job: AssessmentJob, cancel: CancellationSignal) -> AssessmentJob:
        cancel.raise_if_cancelled()
        try:
            assessment = await cancel.guard(
                self.storage.materialize(
                    job.template_id,
                    job.project_name,
                    job.generation_artifact,
                    job.estimation_artifact,
                    template_name=job.template_name,
                )
            )
        except OperationCancelledError:
            raise
        except Exception as exc:
            # Status stays EstimationComplete so resume can retry the save.
            logger.exception("Saving the assessment for job %s failed", job.id)
            await self.store.record_event(job, f"Saving the assessment failed: {exc}")
            return job
        return await self.store.transition_to(job, JobStatus.COMPLETE, assessment_id=assessment.assessment_id)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _generate(self, job: AssessmentJob, cancel: CancellationSignal) -> StageSucceeded[DraftSections] | StageFailed:
        document = SourceDocument(
            ref=job.source_document_ref,
            file_name=job.source_document_name,
            mime_type=job.source_document_mime_type,
        )
        try:
            pages = await cancel.guard(self.extractor.extract(document))
            if not any(page.text.strip() for page in pages):
                return StageFailed(f"No readable text was found in '{job.source_document_name}'.")
            prompt = build_generation_prompt(
                job.template_snapshot,
                job.project_name,
                pages,
                job.reference_context,
                job.analysis_mode,
                job.output_language,
            )
            raw = await cancel.guard(self.gateway.complete(prompt, cancel=cancel))
            result = await self.assembler.assemble_generation(raw, prompt, job.template_snapshot, cancel)
        except OperationCancelledError:
            raise
        except ExtractionError as exc:
            logger.error("Extraction failed for job %s: %s", job.id, exc.message)
            return StageFailed(f"Failed to read the scope document: {exc.message}")
        except GatewayError as exc:
            logger.error("AI generation call failed for job %s: %s", job.id, exc.message)
            return StageFailed(f"AI item generation failed: {exc.message}")
        except Exception as exc:
            logger.exception("Unexpected error while generating items for job %s", job.id)
            return StageFailed(f"Unexpected error during item generation: {exc}")

        if isinstance(result, Malformed):
            logger.error("Generation output for job %s could not be repaired: %s", job.id, result.reason)
            return StageFailed(f"AI returned malformed item list: {result.reason}", raw_response=result.raw)
        generated = len(result.value.item_ids()) - sum(len(s.items) for s in job.template_snapshot.sections)
        logger.info("Generated %d new item(s) for job %s", generated, job.id)
        return StageSucceeded(result.value, result.raw)

    async def _estimate(self, job: AssessmentJob, cancel: CancellationSignal) -> StageSucceeded[ColumnEstimates] | StageFailed:
        draft = job.generation_artifact
        if draft is None:
            return StageFailed("Cannot estimate before items have been generated.")
        template = job.template_snapshot
        try:
            prompt = build_estimation_prompt(
                draft,
                resolve_columns(template.estimation_columns, []),
                job.project_name,
                job.reference_context,
                job.analysis_mode,
                job.output_language,
                self.assembler.policy,
            )
            raw = await cancel.guard(self.gateway.complete(prompt, cancel=cancel))
            result = await self.assembler.assemble_estimation(
                raw,
                prompt,
                draft,
                template.estimation_columns,
                job.reference_context.assessments,
                cancel,
            )
        except OperationCancelledError:
            raise
        except GatewayError as exc:
            logger.error("AI estimation call failed for job %s: %s", job.id, exc.message)
            return StageFailed(f"AI effort estimation failed: {exc.message}")
        except Exception as exc:
            logger.exception("Unexpected error while estimating job %s", job.id)
            return StageFailed(f"Unexpected error during effort estimation: {exc}")

        if isinstance(result, Malformed):
            logger.error("Estimation output for job %s could not be repaired: %s", job.id, result.reason)
            return StageFailed(f"AI returned malformed estimates: {result.reason}", raw_response=result.raw)
        return StageSucceeded(result.value, result.raw)
