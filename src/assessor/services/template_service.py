"""Project template persistence."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assessor.db.models.project_template import ProjectTemplateRow
from assessor.errors.exceptions import NotFoundError
from assessor.models.template import CreateTemplateRequest, ProjectTemplate
from assessor.repositories.template_repo import ProjectTemplateRepository
from assessor.services.id_generator import generate_id


def row_to_template(row: ProjectTemplateRow) -> ProjectTemplate:
    return ProjectTemplate(
        template_id=row.template_id,
        template_name=row.template_name,
        estimation_columns=row.estimation_columns,
        sections=row.sections,
    )


class TemplateService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, request: CreateTemplateRequest) -> ProjectTemplate:
        async with self._session_factory() as session:
            row = await ProjectTemplateRepository(session).create(
                template_id=generate_id("tpl_"),
                template_name=request.template_name,
                estimation_columns=request.estimation_columns,
                sections=[section.model_dump(mode="json") for section in request.sections],
            )
            await session.commit()
            return row_to_template(row)

    async def get(self, template_id: str) -> ProjectTemplate:
        async with self._session_factory() as session:
            row = await ProjectTemplateRepository(session).get(template_id)
        if row is None:
            raise NotFoundError("Project template", template_id)
        return row_to_template(row)

    async def list_all(self) -> list[ProjectTemplate]:
        async with self._session_factory() as session:
            rows = await ProjectTemplateRepository(session).list_all()
            return [row_to_template(row) for row in rows]
