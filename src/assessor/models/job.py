"""Pydantic views of assessment jobs."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from assessor.models.assessment import ColumnEstimates, DraftSections, ReferenceContext
from assessor.models.enums import AnalysisMode, JobStatus, OutputLanguage
from assessor.models.template import ProjectTemplate


class NewJobInput(BaseModel):
    """Immutable inputs captured when a job is created."""

    model_config = ConfigDict(extra="forbid")

    template: ProjectTemplate
    project_name: str
    analysis_mode: AnalysisMode = AnalysisMode.INTERPRETIVE
    output_language: OutputLanguage = OutputLanguage.ENGLISH
    source_document_ref: str
    source_document_name: str
    source_document_mime_type: str | None = None
    reference_context: ReferenceContext = ReferenceContext()


class AssessmentJob(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    template_id: str
    template_name: str
    project_name: str
    analysis_mode: AnalysisMode
    output_language: OutputLanguage
    status: JobStatus
    version: int
    template_snapshot: ProjectTemplate
    source_document_ref: str
    source_document_name: str
    source_document_mime_type: str | None = None
    reference_context: ReferenceContext
    generation_artifact: DraftSections | None = None
    raw_generation_response: str | None = None
    estimation_artifact: ColumnEstimates | None = None
    raw_estimation_response: str | None = None
    error_message: str | None = None
    assessment_id: str | None = None
    created_at: datetime
    last_modified_at: datetime


class JobSummary(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    template_id: str
    template_name: str
    project_name: str
    status: JobStatus
    error_message: str | None = None
    assessment_id: str | None = None
    created_at: datetime
    last_modified_at: datetime


class JobEvent(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    job_id: str
    from_status: JobStatus | None = None
    to_status: JobStatus
    error_message: str | None = None
    occurred_at: datetime
