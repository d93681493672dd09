"""Project assessment table."""

from sqlalchemy import JSON, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from assessor.db.base import Base, TimestampMixin


class ProjectAssessmentRow(Base, TimestampMixin):
    __tablename__ = "project_assessments"

    assessment_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    template_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    estimation_columns: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sections: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
