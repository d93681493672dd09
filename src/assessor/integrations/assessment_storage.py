"""SQL-backed storage for finished project assessments."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assessor.db.base import ensure_utc
from assessor.db.models.project_assessment import ProjectAssessmentRow
from assessor.models.assessment import (
    ColumnEstimates,
    DraftSections,
    ProjectAssessment,
    build_assessment,
)
from assessor.repositories.project_assessment_repo import ProjectAssessmentRepository
from assessor.services.id_generator import generate_id

logger = logging.getLogger(__name__)


def row_to_assessment(row: ProjectAssessmentRow) -> ProjectAssessment:
    return ProjectAssessment(
        assessment_id=row.assessment_id,
        template_id=row.template_id,
        template_name=row.template_name,
        project_name=row.project_name,
        status=row.status,
        estimation_columns=row.estimation_columns,
        sections=row.sections,
        created_at=ensure_utc(row.created_at),
        last_modified_at=ensure_utc(row.last_modified_at),
    )


class SqlAssessmentStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def materialize(
        self,
        template_id: str,
        project_name: str,
        draft: DraftSections,
        estimates: ColumnEstimates,
        *,
        template_name: str = "",
    ) -> ProjectAssessment:
        assessment = build_assessment(template_id, template_name, project_name, draft, estimates)
        async with self._session_factory() as session:
            row = await ProjectAssessmentRepository(session).create(
                assessment_id=generate_id("asm_"),
                template_id=assessment.template_id,
                template_name=assessment.template_name,
                project_name=assessment.project_name,
                status=assessment.status,
                estimation_columns=assessment.estimation_columns,
                sections=[section.model_dump(mode="json") for section in assessment.sections],
                total_hours=assessment.total_hours(),
            )
            await session.commit()
            saved = row_to_assessment(row)
        logger.info("Saved assessment %s for project %r", saved.assessment_id, project_name)
        return saved

    async def get(self, assessment_id: str) -> ProjectAssessment | None:
        async with self._session_factory() as session:
            row = await ProjectAssessmentRepository(session).get(assessment_id)
            return row_to_assessment(row) if row else None
