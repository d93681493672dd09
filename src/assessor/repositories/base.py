"""Shared async repository plumbing keyed on each table's string primary key."""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from assessor.db.base import Base

RowT = TypeVar("RowT", bound=Base)


class BaseRepository(Generic[RowT]):
    """Subclasses set ``model_class`` and the name of its primary key column."""

    model_class: ClassVar[type]
    pk_field: ClassVar[str] = "id"

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def _pk(self):
        return getattr(self.model_class, self.pk_field)

    async def get(self, pk_value: str) -> RowT | None:
        result = await self.session.execute(select(self.model_class).where(self._pk == pk_value))
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> RowT:
        """Add a row and flush so server-side defaults are populated."""
        row = self.model_class(**kwargs)
        self.session.add(row)
        await self.session.flush()
        return row

    async def delete(self, pk_value: str) -> bool:
        result = await self.session.execute(delete(self.model_class).where(self._pk == pk_value))
        return result.rowcount > 0

    async def list_by_ids(self, pk_values: list[str]) -> list[RowT]:
        """Rows for ``pk_values`` in the order requested; unknown keys are skipped."""
        if not pk_values:
            return []
        result = await self.session.execute(select(self.model_class).where(self._pk.in_(pk_values)))
        by_pk = {getattr(row, self.pk_field): row for row in result.scalars().all()}
        return [by_pk[pk] for pk in dict.fromkeys(pk_values) if pk in by_pk]
