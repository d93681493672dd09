"""Map exceptions onto the ErrorResponse envelope."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from assessor.errors.exceptions import (
    AssessorError,
    ConcurrentModificationError,
    OperationCancelledError,
)
from assessor.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def error_response(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            details=details,
            trace_id=getattr(request.state, "trace_id", "unknown"),
            timestamp=datetime.now(timezone.utc),
        )
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AssessorError)
    async def assessor_error_handler(request: Request, exc: AssessorError):
        if isinstance(exc, ConcurrentModificationError):
            logger.warning(
                "Concurrent modification on %s %s (job=%s, status=%s)",
                request.method, request.url.path, exc.job_id, exc.actual_status,
            )
        elif isinstance(exc, OperationCancelledError):
            logger.info("Request %s %s cancelled: %s", request.method, request.url.path, exc.message)
        return error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # FastAPI's default is a bare 422; keep the envelope consistent.
        details = [
            {"loc": list(error["loc"]), "msg": error["msg"]}
            for error in exc.errors()
        ]
        return error_response(request, 422, "VALIDATION_ERROR", "Request validation failed", details)
