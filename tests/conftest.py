"""Shared test fixtures."""

import asyncio
import json
import re
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from assessor.db.engine import create_session_factory, create_tables
from assessor.errors.exceptions import ExtractionError
from assessor.integrations.assessment_storage import SqlAssessmentStorage
from assessor.integrations.document_store import DocumentStore
from assessor.integrations.references import SqlReferenceResolver
from assessor.models.assessment import ReferenceContext
from assessor.models.enums import AnalysisMode, OutputLanguage
from assessor.models.job import NewJobInput
from assessor.models.template import ProjectTemplate, TemplateItem, TemplateSection
from assessor.pipeline.assembler import ResultAssembler
from assessor.pipeline.contracts import ExtractedPage
from assessor.pipeline.job_store import JobStore
from assessor.pipeline.orchestrator import PipelineOrchestrator
from assessor.services.assessment_service import AssessmentService
from assessor.services.template_service import TemplateService


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeGateway:
    """Scripted LLM gateway.

    Each response is a string, an exception to raise, or a callable that
    receives the prompt and returns a string.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, list]] = []
        self.entered = asyncio.Event()
        self.release: asyncio.Event | None = None

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def complete(self, prompt, history=None, cancel=None):
        self.calls.append((prompt, list(history or [])))
        self.entered.set()
        if self.release is not None:
            if cancel is not None:
                await cancel.guard(self.release.wait())
            else:
                await self.release.wait()
        if not self.responses:
            raise AssertionError("unexpected gateway call")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(prompt)
        return response


class FakeExtractor:
    def __init__(self, pages=None, error: ExtractionError | None = None):
        self.pages = pages if pages is not None else [ExtractedPage(1, "Customers can register and log in.")]
        self.error = error
        self.calls = 0

    async def extract(self, document):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.pages)


class FailingStorage:
    """Assessment storage that fails a set number of times before delegating."""

    def __init__(self, inner, failures: int = 1):
        self.inner = inner
        self.failures = failures

    async def materialize(self, template_id, project_name, draft, estimates, *, template_name=""):
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("assessment database unavailable")
        return await self.inner.materialize(
            template_id, project_name, draft, estimates, template_name=template_name
        )


def generated_items(*names: str) -> str:
    return json.dumps(
        [{"itemName": name, "itemDetail": f"Build {name} against the orders api", "category": "New UI"} for name in names]
    )


def estimate_all(hours: dict[str, float], is_needed: bool = True):
    """Callable response that estimates every item id found in the estimation prompt."""

    def _respond(prompt: str) -> str:
        item_ids = re.findall(r'"itemId": "([^"]+)"', prompt)
        return json.dumps(
            {"items": [{"itemId": item_id, "isNeeded": is_needed, "estimates": hours} for item_id in item_ids]}
        )

    return _respond


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so every session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def assessment_storage(session_factory):
    return SqlAssessmentStorage(session_factory)


# ---------------------------------------------------------------------------
# Domain objects
# ---------------------------------------------------------------------------


@pytest.fixture
def template():
    return ProjectTemplate(
        template_id="tpl_standard",
        template_name="Standard Web Project",
        estimation_columns=["Requirement", "BE", "FE"],
        sections=[
            TemplateSection(
                section_name="Features",
                type="AI-Generated",
                items=[],
            ),
        ],
    )


@pytest.fixture
def template_with_setup():
    return ProjectTemplate(
        template_id="tpl_setup",
        template_name="Project With Setup",
        estimation_columns=["Requirement", "BE", "FE"],
        sections=[
            TemplateSection(
                section_name="Project Setup",
                type="Project-Level",
                items=[TemplateItem(item_id="1.1", item_name="System Setup", category="New Backgrounder")],
            ),
            TemplateSection(section_name="Portal", type="AI-Generated"),
            TemplateSection(section_name="Back Office", type="AI-Generated"),
        ],
    )


@pytest.fixture
def make_job(store, template):
    async def _make(job_template=None, reference_context=None, **overrides):
        job_input = NewJobInput(
            template=job_template or template,
            project_name=overrides.pop("project_name", "Customer Portal"),
            analysis_mode=overrides.pop("analysis_mode", AnalysisMode.INTERPRETIVE),
            output_language=overrides.pop("output_language", OutputLanguage.ENGLISH),
            source_document_ref="doc_test/scope.txt",
            source_document_name="scope.txt",
            source_document_mime_type="text/plain",
            reference_context=reference_context or ReferenceContext(),
        )
        return await store.create(job_input)

    return _make


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def orchestrator(store, extractor, gateway, assessment_storage):
    return PipelineOrchestrator(
        store=store,
        extractor=extractor,
        gateway=gateway,
        storage=assessment_storage,
        assembler=ResultAssembler(gateway),
        stale_after=timedelta(minutes=15),
    )


@pytest.fixture
def document_store(tmp_path):
    return DocumentStore(tmp_path / "documents")


@pytest.fixture
def service(orchestrator, session_factory, document_store):
    return AssessmentService(
        orchestrator=orchestrator,
        templates=TemplateService(session_factory),
        documents=document_store,
        resolver=SqlReferenceResolver(session_factory),
        max_reference_assessments=5,
    )


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def app(db_engine, session_factory, service):
    """Create a test application wired to fake collaborators."""
    from assessor.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.assessment_service = service
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
