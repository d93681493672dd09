"""FastAPI dependency injection providers."""

import asyncio
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request

from assessor.pipeline.cancellation import CancellationSignal
from assessor.services.assessment_service import AssessmentService

_DISCONNECT_POLL_SECONDS = 0.5


def get_assessment_service(request: Request) -> AssessmentService:
    return request.app.state.assessment_service


def get_trace_id(request: Request) -> str:
    """Extract trace_id from request state (set by middleware)."""
    return getattr(request.state, "trace_id", "unknown")


async def get_cancellation(request: Request) -> AsyncGenerator[CancellationSignal, None]:
    """A cancellation signal tied to the request: it fires when the client disconnects."""
    signal = CancellationSignal()

    async def _watch() -> None:
        while not signal.cancelled:
            if await request.is_disconnected():
                signal.cancel("client disconnected")
                return
            await asyncio.sleep(_DISCONNECT_POLL_SECONDS)

    watcher = asyncio.create_task(_watch())
    try:
        yield signal
    finally:
        watcher.cancel()


# Type aliases for dependency injection
Service = Annotated[AssessmentService, Depends(get_assessment_service)]
Cancellation = Annotated[CancellationSignal, Depends(get_cancellation)]
TraceId = Annotated[str, Depends(get_trace_id)]
