"""Assessment job and job event tables."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assessor.db.base import Base, TimestampMixin, utcnow


class AssessmentJobRow(Base, TimestampMixin):
    __tablename__ = "assessment_jobs"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    template_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    analysis_mode: Mapped[str] = mapped_column(String(32), nullable=False)
    output_language: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    template_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    source_document_ref: Mapped[str] = mapped_column(String(512), nullable=False)
    source_document_name: Mapped[str] = mapped_column(String(512), nullable=False)
    source_document_mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reference_context: Mapped[dict] = mapped_column(JSON, nullable=False)
    generation_artifact: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    raw_generation_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimation_artifact: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    raw_estimation_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    assessment_id: Mapped[str | None] = mapped_column(String(128), nullable=True)


class AssessmentJobEventRow(Base):
    """One row per status transition, written in the same transaction as the transition."""

    __tablename__ = "assessment_job_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("assessment_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
