"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from assessor.api.routes import assessment_jobs, health, templates

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router)
api_router.include_router(templates.router)
api_router.include_router(assessment_jobs.router)
