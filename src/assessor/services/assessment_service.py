"""Operations exposed to the API layer and the background worker."""

import logging
from dataclasses import dataclass, field

from assessor.errors.exceptions import PreviewNotAvailableError, ValidationError
from assessor.integrations.document_store import DocumentStore
from assessor.models.assessment import ProjectAssessment, ReferenceContext, ReferenceDocument
from assessor.models.enums import AnalysisMode, OutputLanguage
from assessor.models.job import AssessmentJob, JobEvent, JobSummary, NewJobInput
from assessor.pipeline.cancellation import CancellationSignal
from assessor.pipeline.contracts import ReferenceResolver
from assessor.pipeline.job_store import JobStore
from assessor.pipeline.orchestrator import PipelineOrchestrator
from assessor.services.template_service import TemplateService
from assessor.workers.queue import JobQueue

logger = logging.getLogger(__name__)


@dataclass
class UploadedDocument:
    file_name: str
    content: bytes
    mime_type: str | None = None


@dataclass
class StartJobRequest:
    template_id: str
    project_name: str
    document: UploadedDocument
    analysis_mode: AnalysisMode = AnalysisMode.INTERPRETIVE
    output_language: OutputLanguage = OutputLanguage.ENGLISH
    reference_ids: list[str] = field(default_factory=list)
    reference_documents: list[ReferenceDocument] = field(default_factory=list)


class AssessmentService:
    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        templates: TemplateService,
        documents: DocumentStore,
        resolver: ReferenceResolver,
        max_reference_assessments: int = 5,
        queue: JobQueue | None = None,
    ):
        self.orchestrator = orchestrator
        self.store: JobStore = orchestrator.store
        self.templates = templates
        self.documents = documents
        self.resolver = resolver
        self.max_reference_assessments = max_reference_assessments
        self.queue = queue

    @property
    def runs_in_background(self) -> bool:
        return self.queue is not None

    async def start_job(self, request: StartJobRequest, cancel: CancellationSignal | None = None) -> AssessmentJob:
        """Create a job and run it, or hand it to the worker queue when one is configured.

        Everything the pipeline needs later (template snapshot, stored document,
        resolved references) is captured here so resume never needs the caller again.
        """
        project_name = request.project_name.strip()
        if not project_name:
            raise ValidationError("Project name is required")
        template = await self.templates.get(request.template_id)

        document = await self.documents.save(
            request.document.file_name,
            request.document.content,
            request.document.mime_type,
        )
        try:
            references = await self.resolver.resolve(request.reference_ids, self.max_reference_assessments)
            job = await self.store.create(
                NewJobInput(
                    template=template,
                    project_name=project_name,
                    analysis_mode=request.analysis_mode,
                    output_language=request.output_language,
                    source_document_ref=document.ref,
                    source_document_name=document.file_name,
                    source_document_mime_type=document.mime_type,
                    reference_context=ReferenceContext(
                        reference_ids=list(request.reference_ids),
                        assessments=references,
                        documents=request.reference_documents,
                    ),
                )
            )
        except Exception:
            # no job owns the upload yet
            await self.documents.delete(document.ref)
            raise

        if self.queue is not None:
            await self.queue.enqueue(job.id)
            return job
        return await self.orchestrator.start(job.id, cancel)

    async def resume_job(self, job_id: str, cancel: CancellationSignal | None = None) -> AssessmentJob:
        if self.queue is not None:
            job = await self.store.require(job_id)
            self.orchestrator.ensure_resumable(job)
            await self.queue.enqueue(job.id)
            return job
        return await self.orchestrator.resume(job_id, cancel)

    async def get_job(self, job_id: str) -> AssessmentJob:
        return await self.store.require(job_id)

    async def list_job_summaries(self) -> list[JobSummary]:
        return await self.store.list_summaries()

    async def list_job_events(self, job_id: str) -> list[JobEvent]:
        await self.store.require(job_id)
        return await self.store.list_events(job_id)

    async def delete_job(self, job_id: str) -> bool:
        job = await self.store.get(job_id)
        if job is None:
            return False
        deleted = await self.store.delete(job_id)
        if deleted:
            await self.documents.delete(job.source_document_ref)
        return deleted

    async def preview_assessment(self, job_id: str) -> ProjectAssessment:
        assessment = await self.orchestrator.try_build_assessment(job_id)
        if assessment is None:
            raise PreviewNotAvailableError(job_id)
        return assessment

