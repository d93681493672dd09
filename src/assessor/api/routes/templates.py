"""Project template endpoints."""

from fastapi import APIRouter

from assessor.dependencies import Service
from assessor.models.template import CreateTemplateRequest

router = APIRouter(tags=["Templates"])


@router.post("/templates", status_code=201)
async def create_template(body: CreateTemplateRequest, service: Service) -> dict:
    template = await service.templates.create(body)
    return template.model_dump(mode="json")


@router.get("/templates")
async def list_templates(service: Service) -> list[dict]:
    return [template.model_dump(mode="json") for template in await service.templates.list_all()]


@router.get("/templates/{template_id}")
async def get_template(template_id: str, service: Service) -> dict:
    template = await service.templates.get(template_id)
    return template.model_dump(mode="json")
