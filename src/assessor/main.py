"""FastAPI application factory and lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assessor.config import Settings, settings
from assessor.db.engine import create_db_engine, create_session_factory, create_tables
from assessor.logging_config import configure_logging

# Console output in local mode, JSON lines otherwise
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


def build_service(session_factory, config: Settings = settings, gateway=None, queue=None):
    """Wire the pipeline collaborators into an AssessmentService."""
    from assessor.integrations.assessment_storage import SqlAssessmentStorage
    from assessor.integrations.document_store import DocumentStore
    from assessor.integrations.extraction import LocalDocumentExtractor
    from assessor.integrations.llm import build_gateway
    from assessor.integrations.references import SqlReferenceResolver
    from assessor.pipeline.assembler import ResultAssembler
    from assessor.pipeline.estimation_policy import EstimationPolicy
    from assessor.pipeline.job_store import JobStore
    from assessor.pipeline.orchestrator import PipelineOrchestrator
    from assessor.services.assessment_service import AssessmentService
    from assessor.services.template_service import TemplateService

    documents = DocumentStore(config.storage_dir)
    gateway = gateway or build_gateway(config)
    orchestrator = PipelineOrchestrator(
        store=JobStore(session_factory),
        extractor=LocalDocumentExtractor(documents),
        gateway=gateway,
        storage=SqlAssessmentStorage(session_factory),
        assembler=ResultAssembler(gateway, EstimationPolicy.from_settings(config.estimation_policy)),
        stale_after=timedelta(seconds=config.stale_in_progress_seconds),
        heartbeat_interval=timedelta(seconds=config.heartbeat_interval_seconds),
    )
    return AssessmentService(
        orchestrator=orchestrator,
        templates=TemplateService(session_factory),
        documents=documents,
        resolver=SqlReferenceResolver(session_factory),
        max_reference_assessments=config.max_reference_assessments,
        queue=queue,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no migrations)
    if "sqlite" in db_url:
        await create_tables(engine)
        logger.info("SQLite tables created (local mode)")

    session_factory = create_session_factory(engine)
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory

    worker_task = None
    queue = None
    if settings.background_processing:
        from assessor.workers.assessment_worker import AssessmentWorker
        from assessor.workers.queue import JobQueue

        queue = JobQueue()

    service = build_service(session_factory, settings, queue=queue)
    app.state.assessment_service = service

    if queue is not None:
        worker = AssessmentWorker(service.orchestrator, queue, concurrency=settings.worker_concurrency)
        worker_task = asyncio.create_task(worker.run())

    logger.info(
        "Assessor API started (db=%s, background=%s)",
        "sqlite" if "sqlite" in db_url else "postgresql",
        settings.background_processing,
    )
    yield

    # Shutdown
    if worker_task is not None:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
    await engine.dispose()
    logger.info("Assessor API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Assessor API",
        version="0.1.0",
        description="Resumable two-stage pipeline turning scope documents into estimated project assessments.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from assessor.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from assessor.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from assessor.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
