"""Assessment job repository."""

from typing import Any

from sqlalchemy import delete, select, update

from assessor.db.models.assessment_job import AssessmentJobEventRow, AssessmentJobRow
from assessor.repositories.base import BaseRepository


class AssessmentJobRepository(BaseRepository[AssessmentJobRow]):
    model_class = AssessmentJobRow

    async def list_recent(self, limit: int | None = None) -> list[AssessmentJobRow]:
        stmt = select(AssessmentJobRow).order_by(
            AssessmentJobRow.last_modified_at.desc(),
            AssessmentJobRow.id.desc(),
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def compare_and_set(
        self,
        job_id: str,
        expected_status: str,
        expected_version: int,
        values: dict[str, Any],
    ) -> bool:
        """Apply values only if the row still has the expected status and version.

        The version is bumped as part of the same statement.
        """
        stmt = (
            update(AssessmentJobRow)
            .where(
                AssessmentJobRow.id == job_id,
                AssessmentJobRow.status == expected_status,
                AssessmentJobRow.version == expected_version,
            )
            .values(version=AssessmentJobRow.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def add_event(self, job_id: str, from_status: str | None, to_status: str, **kwargs: Any) -> AssessmentJobEventRow:
        row = AssessmentJobEventRow(job_id=job_id, from_status=from_status, to_status=to_status, **kwargs)
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_events(self, job_id: str) -> list[AssessmentJobEventRow]:
        stmt = (
            select(AssessmentJobEventRow)
            .where(AssessmentJobEventRow.job_id == job_id)
            .order_by(AssessmentJobEventRow.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_job(self, job_id: str) -> bool:
        await self.session.execute(
            delete(AssessmentJobEventRow).where(AssessmentJobEventRow.job_id == job_id)
        )
        return await self.delete(job_id)
