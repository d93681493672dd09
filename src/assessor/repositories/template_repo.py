"""Project template repository."""

from sqlalchemy import select

from assessor.db.models.project_template import ProjectTemplateRow
from assessor.repositories.base import BaseRepository


class ProjectTemplateRepository(BaseRepository[ProjectTemplateRow]):
    model_class = ProjectTemplateRow
    pk_field = "template_id"

    async def list_all(self) -> list[ProjectTemplateRow]:
        stmt = select(ProjectTemplateRow).order_by(ProjectTemplateRow.template_name)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
