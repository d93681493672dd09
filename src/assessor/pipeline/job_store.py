"""Durable store of assessment jobs with atomic status transitions.

Every transition is a single compare-and-set UPDATE keyed on the job's
status and version. Whoever loses the race gets ConcurrentModificationError
and must re-fetch the job; nothing else serializes work on a job.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assessor.db.base import ensure_utc, utcnow
from assessor.db.models.assessment_job import AssessmentJobRow
from assessor.errors.exceptions import (
    ConcurrentModificationError,
    InvalidJobStateError,
    NotFoundError,
)
from assessor.models.assessment import ColumnEstimates, DraftSections
from assessor.models.enums import JobStatus
from assessor.models.job import AssessmentJob, JobEvent, JobSummary, NewJobInput
from assessor.pipeline import state_machine
from assessor.repositories.assessment_job_repo import AssessmentJobRepository
from assessor.services.id_generator import generate_id

logger = logging.getLogger(__name__)


def row_to_job(row: AssessmentJobRow) -> AssessmentJob:
    return AssessmentJob(
        id=row.id,
        template_id=row.template_id,
        template_name=row.template_name,
        project_name=row.project_name,
        analysis_mode=row.analysis_mode,
        output_language=row.output_language,
        status=row.status,
        version=row.version,
        template_snapshot=row.template_snapshot,
        source_document_ref=row.source_document_ref,
        source_document_name=row.source_document_name,
        source_document_mime_type=row.source_document_mime_type,
        reference_context=row.reference_context,
        generation_artifact=row.generation_artifact,
        raw_generation_response=row.raw_generation_response,
        estimation_artifact=row.estimation_artifact,
        raw_estimation_response=row.raw_estimation_response,
        error_message=row.error_message,
        assessment_id=row.assessment_id,
        created_at=ensure_utc(row.created_at),
        last_modified_at=ensure_utc(row.last_modified_at),
    )


def row_to_summary(row: AssessmentJobRow) -> JobSummary:
    return JobSummary(
        id=row.id,
        template_id=row.template_id,
        template_name=row.template_name,
        project_name=row.project_name,
        status=row.status,
        error_message=row.error_message,
        assessment_id=row.assessment_id,
        created_at=ensure_utc(row.created_at),
        last_modified_at=ensure_utc(row.last_modified_at),
    )


class JobStore:
    """Repository facade over assessment_jobs; one session per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, job_input: NewJobInput) -> AssessmentJob:
        job_id = generate_id("asj_")
        now = utcnow()
        template = job_input.template
        async with self._session_factory() as session:
            repo = AssessmentJobRepository(session)
            row = await repo.create(
                id=job_id,
                template_id=template.template_id,
                template_name=template.template_name,
                project_name=job_input.project_name,
                analysis_mode=job_input.analysis_mode.value,
                output_language=job_input.output_language.value,
                status=JobStatus.PENDING.value,
                version=0,
                template_snapshot=template.model_dump(mode="json"),
                source_document_ref=job_input.source_document_ref,
                source_document_name=job_input.source_document_name,
                source_document_mime_type=job_input.source_document_mime_type,
                reference_context=job_input.reference_context.model_dump(mode="json"),
                created_at=now,
                last_modified_at=now,
            )
            await repo.add_event(job_id, None, JobStatus.PENDING.value, occurred_at=now)
            await session.commit()
            job = row_to_job(row)
        logger.info("Created assessment job %s for project %r", job_id, job_input.project_name)
        return job

    async def get(self, job_id: str) -> AssessmentJob | None:
        async with self._session_factory() as session:
            row = await AssessmentJobRepository(session).get(job_id)
            return row_to_job(row) if row else None

    async def require(self, job_id: str) -> AssessmentJob:
        job = await self.get(job_id)
        if job is None:
            raise NotFoundError("Assessment job", job_id)
        return job

    async def list_summaries(self) -> list[JobSummary]:
        async with self._session_factory() as session:
            rows = await AssessmentJobRepository(session).list_recent()
            return [row_to_summary(row) for row in rows]

    async def list_events(self, job_id: str) -> list[JobEvent]:
        async with self._session_factory() as session:
            rows = await AssessmentJobRepository(session).list_events(job_id)
            return [
                JobEvent(
                    job_id=row.job_id,
                    from_status=row.from_status,
                    to_status=row.to_status,
                    error_message=row.error_message,
                    occurred_at=ensure_utc(row.occurred_at),
                )
                for row in rows
            ]

    async def delete(self, job_id: str) -> bool:
        async with self._session_factory() as session:
            deleted = await AssessmentJobRepository(session).delete_job(job_id)
            await session.commit()
        if deleted:
            logger.info("Deleted assessment job %s", job_id)
        return deleted

    async def transition_to(
        self,
        job: AssessmentJob,
        new_status: JobStatus,
        *,
        generation_artifact: DraftSections | None = None,
        estimation_artifact: ColumnEstimates | None = None,
        raw_response: str | None = None,
        error_message: str | None = None,
        assessment_id: str | None = None,
    ) -> AssessmentJob:
        """Atomically move ``job`` from its observed status/version to ``new_status``.

        ``job`` is the caller's last observed snapshot; the update only lands if
        the stored row still matches it. Artifacts, error and status are written
        in one statement.

        Raises:
            InvalidJobStateError: ``new_status`` is not reachable from the observed status.
            ConcurrentModificationError: the row moved on since ``job`` was read.
            NotFoundError: the job no longer exists.
        """
        if not state_machine.is_valid_transition(job.status, new_status):
            raise InvalidJobStateError(job.id, job.status.value, f"move to {new_status.value}")
        if new_status in state_machine.REQUIRES_GENERATION_ARTIFACT and generation_artifact is None:
            raise ValueError(f"{new_status.value} requires a generation artifact")
        if new_status in state_machine.REQUIRES_ESTIMATION_ARTIFACT:
            if estimation_artifact is None:
                raise ValueError(f"{new_status.value} requires an estimation artifact")
            if job.generation_artifact is None:
                raise ValueError("estimation artifact without a generation artifact")
            if estimation_artifact.item_ids() != set(job.generation_artifact.item_ids()):
                raise ValueError("estimation artifact does not cover the generated item set")
        if new_status in state_machine.REQUIRES_ERROR and not error_message:
            raise ValueError(f"{new_status.value} requires an error message")

        now = utcnow()
        values: dict = {
            "status": new_status.value,
            "last_modified_at": now,
            "error_message": error_message if new_status in state_machine.FAILED_STATUSES else None,
        }
        stage = state_machine.stage_of(new_status)
        if generation_artifact is not None:
            values["generation_artifact"] = generation_artifact.model_dump(mode="json")
        if estimation_artifact is not None:
            values["estimation_artifact"] = estimation_artifact.model_dump(mode="json")
        if raw_response is not None and stage is not None:
            values[f"raw_{stage}_response"] = raw_response
        if assessment_id is not None:
            values["assessment_id"] = assessment_id

        async with self._session_factory() as session:
            repo = AssessmentJobRepository(session)
            applied = await repo.compare_and_set(job.id, job.status.value, job.version, values)
            if not applied:
                await session.rollback()
                await self._raise_lost_race(repo, job)
            await repo.add_event(
                job.id,
                job.status.value,
                new_status.value,
                error_message=values["error_message"],
                occurred_at=now,
            )
            await session.commit()

        changes = {
            "status": new_status,
            "version": job.version + 1,
            "last_modified_at": now,
            "error_message": values["error_message"],
        }
        if generation_artifact is not None:
            changes["generation_artifact"] = generation_artifact
        if estimation_artifact is not None:
            changes["estimation_artifact"] = estimation_artifact
        if raw_response is not None and stage is not None:
            changes[f"raw_{stage}_response"] = raw_response
        if assessment_id is not None:
            changes["assessment_id"] = assessment_id
        updated = job.model_copy(update=changes)

        logger.info("job %s: %s -> %s (v%d)", job.id, job.status.value, new_status.value, updated.version)
        return updated

    async def touch(self, job: AssessmentJob) -> AssessmentJob:
        """Refresh ``last_modified_at`` on a job the caller still owns.

        Same compare-and-set as a transition but without a status change or
        event. The version bump makes a takeover that read the job before the
        refresh lose its race.
        """
        now = utcnow()
        async with self._session_factory() as session:
            repo = AssessmentJobRepository(session)
            applied = await repo.compare_and_set(job.id, job.status.value, job.version, {"last_modified_at": now})
            if not applied:
                await session.rollback()
                await self._raise_lost_race(repo, job)
            await session.commit()
        return job.model_copy(update={"version": job.version + 1, "last_modified_at": now})

    async def record_event(self, job: AssessmentJob, error_message: str) -> None:
        """Log a problem against the job's history without changing its status."""
        async with self._session_factory() as session:
            await AssessmentJobRepository(session).add_event(
                job.id,
                job.status.value,
                job.status.value,
                error_message=error_message,
                occurred_at=utcnow(),
            )
            await session.commit()

    @staticmethod
    async def _raise_lost_race(repo: AssessmentJobRepository, job: AssessmentJob) -> None:
        current = await repo.get(job.id)
        if current is None:
            raise NotFoundError("Assessment job", job.id)
        raise ConcurrentModificationError(job.id, job.status.value, current.status)
