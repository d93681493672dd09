"""Project template table."""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from assessor.db.base import Base, TimestampMixin


class ProjectTemplateRow(Base, TimestampMixin):
    __tablename__ = "project_templates"

    template_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    estimation_columns: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sections: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
