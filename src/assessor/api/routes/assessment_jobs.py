"""Assessment job endpoints: start, resume, inspect, preview and delete."""

import json

from fastapi import APIRouter, File, Form, Response, UploadFile
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from assessor.dependencies import Cancellation, Service
from assessor.errors.exceptions import NotFoundError, ValidationError
from assessor.models.assessment import ReferenceDocument
from assessor.models.enums import AnalysisMode, OutputLanguage
from assessor.models.job import AssessmentJob
from assessor.services.assessment_service import StartJobRequest, UploadedDocument

router = APIRouter(tags=["Assessment Jobs"])

_reference_documents = TypeAdapter(list[ReferenceDocument])

# Large or internal fields left out of the default job payload.
_HIDDEN_FIELDS = {"template_snapshot", "raw_generation_response", "raw_estimation_response"}


def _job_payload(job: AssessmentJob, include_raw: bool = False) -> dict:
    exclude = None if include_raw else _HIDDEN_FIELDS
    return job.model_dump(mode="json", exclude=exclude)


def _parse_reference_documents(raw: str | None) -> list[ReferenceDocument]:
    if not raw or not raw.strip():
        return []
    try:
        return _reference_documents.validate_python(json.loads(raw))
    except (json.JSONDecodeError, PydanticValidationError) as exc:
        raise ValidationError("reference_documents must be a JSON array of {source, summary}", str(exc)) from exc


@router.post("/assessment-jobs", status_code=201)
async def start_assessment_job(
    service: Service,
    cancel: Cancellation,
    template_id: str = Form(...),
    project_name: str = Form(...),
    file: UploadFile = File(...),
    analysis_mode: AnalysisMode = Form(AnalysisMode.INTERPRETIVE),
    output_language: OutputLanguage = Form(OutputLanguage.ENGLISH),
    reference_ids: list[str] = Form(default=[]),
    reference_documents: str | None = Form(None),
):
    content = await file.read()
    request = StartJobRequest(
        template_id=template_id,
        project_name=project_name,
        document=UploadedDocument(
            file_name=file.filename or "document",
            content=content,
            mime_type=file.content_type,
        ),
        analysis_mode=analysis_mode,
        output_language=output_language,
        reference_ids=[ref for ref in reference_ids if ref.strip()],
        reference_documents=_parse_reference_documents(reference_documents),
    )
    job = await service.start_job(request, cancel)
    status_code = 202 if service.runs_in_background else 201
    return JSONResponse(status_code=status_code, content=_job_payload(job))


@router.get("/assessment-jobs")
async def list_assessment_jobs(service: Service) -> list[dict]:
    summaries = await service.list_job_summaries()
    return [summary.model_dump(mode="json") for summary in summaries]


@router.get("/assessment-jobs/{job_id}")
async def get_assessment_job(job_id: str, service: Service, include_raw: bool = False) -> dict:
    job = await service.get_job(job_id)
    return _job_payload(job, include_raw=include_raw)


@router.get("/assessment-jobs/{job_id}/events")
async def list_assessment_job_events(job_id: str, service: Service) -> list[dict]:
    events = await service.list_job_events(job_id)
    return [event.model_dump(mode="json") for event in events]


@router.post("/assessment-jobs/{job_id}/resume")
async def resume_assessment_job(job_id: str, service: Service, cancel: Cancellation):
    job = await service.resume_job(job_id, cancel)
    status_code = 202 if service.runs_in_background else 200
    return JSONResponse(status_code=status_code, content=_job_payload(job))


@router.get("/assessment-jobs/{job_id}/preview")
async def preview_assessment(job_id: str, service: Service) -> dict:
    assessment = await service.preview_assessment(job_id)
    return assessment.model_dump(mode="json")


@router.delete("/assessment-jobs/{job_id}", status_code=204)
async def delete_assessment_job(job_id: str, service: Service) -> Response:
    if not await service.delete_job(job_id):
        raise NotFoundError("Assessment job", job_id)
    return Response(status_code=204)
