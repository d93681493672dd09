"""Prior assessments as reference material for new jobs."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assessor.db.models.project_assessment import ProjectAssessmentRow
from assessor.models.assessment import ReferenceItem, ReferenceSummary
from assessor.models.enums import ItemCategory
from assessor.repositories.project_assessment_repo import ProjectAssessmentRepository

logger = logging.getLogger(__name__)


def summarize(row: ProjectAssessmentRow) -> ReferenceSummary:
    items = []
    for section in row.sections or []:
        for item in section.get("items", []):
            if not item.get("is_needed", True):
                continue
            items.append(
                ReferenceItem(
                    item_id=item.get("item_id", ""),
                    item_name=item.get("item_name", ""),
                    category=ItemCategory.normalize(item.get("category")),
                    estimates={
                        column: float(value)
                        for column, value in (item.get("estimates") or {}).items()
                        if isinstance(value, (int, float))
                    },
                )
            )
    return ReferenceSummary(
        reference_id=row.assessment_id,
        project_name=row.project_name,
        total_hours=row.total_hours,
        items=items,
    )


class SqlReferenceResolver:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def resolve(self, reference_ids: list[str], max_count: int) -> list[ReferenceSummary]:
        wanted = list(dict.fromkeys(ref for ref in reference_ids if ref))[:max_count]
        if not wanted:
            return []
        async with self._session_factory() as session:
            rows = await ProjectAssessmentRepository(session).list_by_ids(wanted)
        missing = set(wanted) - {row.assessment_id for row in rows}
        if missing:
            logger.warning("Ignoring unknown reference assessment(s): %s", ", ".join(sorted(missing)))
        return [summarize(row) for row in rows]
