"""Liveness and readiness probes."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter(tags=["Health"])

SERVICE_INFO = {"service": "assessor-api", "version": "0.1.0"}


async def _database_status(request: Request) -> str:
    try:
        async with request.app.state.db_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


def _queue_status(request: Request) -> str:
    service = getattr(request.app.state, "assessment_service", None)
    if service is None or service.queue is None:
        return "disabled"
    return str(len(service.queue))


@router.get("/health")
async def health_check():
    return {"status": "healthy", **SERVICE_INFO}


@router.get("/health/live")
async def liveness():
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Ready once the database answers; also reports how many jobs are waiting for the worker."""
    checks = {"database": await _database_status(request), "queue_depth": _queue_status(request)}
    ready = checks["database"] == "ok"
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )
