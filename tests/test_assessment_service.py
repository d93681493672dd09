"""AssessmentService tests, including queued (background) mode."""

import pytest

from assessor.errors.exceptions import (
    ConcurrentModificationError,
    GatewayError,
    NotFoundError,
    PreviewNotAvailableError,
)
from assessor.models.enums import AnalysisMode, JobStatus
from assessor.models.template import CreateTemplateRequest, TemplateSection
from assessor.services.assessment_service import (
    AssessmentService,
    StartJobRequest,
    UploadedDocument,
)
from assessor.workers.queue import JobQueue

from conftest import estimate_all, generated_items

HOURS = {"Dev": 3}


async def _template_id(service):
    template = await service.templates.create(
        CreateTemplateRequest(
            template_name="Minimal",
            estimation_columns=["Dev"],
            sections=[TemplateSection(section_name="Features", type="AI-Generated")],
        )
    )
    return template.template_id


def _request(template_id, **overrides):
    return StartJobRequest(
        template_id=template_id,
        project_name=overrides.pop("project_name", "  Loyalty App  "),
        document=UploadedDocument("scope.txt", b"Members earn points.", "text/plain"),
        **overrides,
    )


@pytest.mark.asyncio
async def test_start_job_snapshots_inputs(service, gateway, document_store):
    gateway.queue(generated_items("Points ledger"), estimate_all(HOURS))
    template_id = await _template_id(service)

    job = await service.start_job(_request(template_id, analysis_mode=AnalysisMode.STRICT))

    assert job.status == JobStatus.COMPLETE
    assert job.project_name == "Loyalty App"
    assert job.template_snapshot.template_id == template_id
    assert await document_store.read(job.source_document_ref) == b"Members earn points."


@pytest.mark.asyncio
async def test_resume_uses_template_snapshot(service, gateway, store):
    """Resume estimates against the columns captured when the job started."""
    gateway.queue(generated_items("Points ledger"), GatewayError("boom"))
    template_id = await _template_id(service)
    job = await service.start_job(_request(template_id))
    assert job.status == JobStatus.FAILED_ESTIMATION

    gateway.queue(estimate_all(HOURS))
    resumed = await service.resume_job(job.id)

    assert resumed.status == JobStatus.COMPLETE
    assert (await store.require(job.id)).estimation_artifact.columns == ["Dev"]


@pytest.mark.asyncio
async def test_resolved_references_are_stored_on_the_job(service, gateway, assessment_storage):
    gateway.queue(generated_items("Points ledger"), estimate_all(HOURS))
    template_id = await _template_id(service)
    previous = await service.start_job(_request(template_id, project_name="Old Loyalty"))

    gateway.queue(generated_items("Points ledger"), estimate_all(HOURS))
    job = await service.start_job(
        _request(template_id, reference_ids=[previous.assessment_id, "asm_missing"])
    )

    context = job.reference_context
    assert context.reference_ids == [previous.assessment_id, "asm_missing"]
    assert [ref.project_name for ref in context.assessments] == ["Old Loyalty"]


class _UnavailableResolver:
    async def resolve(self, reference_ids, max_count):
        raise RuntimeError("reference lookup unavailable")


@pytest.mark.asyncio
async def test_failed_start_removes_the_uploaded_document(service, store, document_store, gateway):
    broken = AssessmentService(
        orchestrator=service.orchestrator,
        templates=service.templates,
        documents=document_store,
        resolver=_UnavailableResolver(),
    )
    template_id = await _template_id(service)

    with pytest.raises(RuntimeError):
        await broken.start_job(_request(template_id, reference_ids=["asm_1"]))

    assert [path for path in document_store.root.rglob("*") if path.is_file()] == []
    assert await store.list_summaries() == []
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_preview_raises_when_nothing_generated(service, gateway):
    gateway.queue(GatewayError("boom"))
    template_id = await _template_id(service)
    job = await service.start_job(_request(template_id))

    with pytest.raises(PreviewNotAvailableError):
        await service.preview_assessment(job.id)


@pytest.mark.asyncio
async def test_list_events_of_missing_job(service):
    with pytest.raises(NotFoundError):
        await service.list_job_events("asj_missing")


@pytest.mark.asyncio
async def test_delete_missing_job(service):
    assert await service.delete_job("asj_missing") is False


# ---------------------------------------------------------------------------
# Queued mode
# ---------------------------------------------------------------------------


@pytest.fixture
def queued_service(service):
    return AssessmentService(
        orchestrator=service.orchestrator,
        templates=service.templates,
        documents=service.documents,
        resolver=service.resolver,
        queue=JobQueue(),
    )


@pytest.mark.asyncio
async def test_queued_start_returns_pending_job(queued_service, gateway):
    template_id = await _template_id(queued_service)

    job = await queued_service.start_job(_request(template_id))

    assert queued_service.runs_in_background
    assert job.status == JobStatus.PENDING
    assert await queued_service.queue.dequeue() == job.id
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_queued_resume_checks_state_before_queueing(queued_service, orchestrator, gateway, make_job):
    gateway.queue(generated_items("Points ledger"), GatewayError("boom"))
    job = await make_job()
    await orchestrator.start(job.id)

    queued = await queued_service.resume_job(job.id)

    assert queued.status == JobStatus.FAILED_ESTIMATION
    assert len(queued_service.queue) == 1


@pytest.mark.asyncio
async def test_queued_resume_refuses_fresh_in_progress_job(queued_service, orchestrator, store, make_job):
    job = await make_job()
    await store.transition_to(job, JobStatus.GENERATION_IN_PROGRESS)

    with pytest.raises(ConcurrentModificationError):
        await queued_service.resume_job(job.id)
    assert len(queued_service.queue) == 0
