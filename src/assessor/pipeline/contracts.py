"""Interfaces of the collaborators the orchestrator drives."""

from dataclasses import dataclass
from typing import NamedTuple, Protocol

from assessor.models.assessment import (
    ColumnEstimates,
    DraftSections,
    ProjectAssessment,
    ReferenceSummary,
)
from assessor.pipeline.cancellation import CancellationSignal


class ExtractedPage(NamedTuple):
    page_number: int
    text: str


@dataclass(frozen=True)
class SourceDocument:
    """Handle to an uploaded scope document kept by the document store."""

    ref: str
    file_name: str
    mime_type: str | None = None


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str


class DocumentExtractor(Protocol):
    async def extract(self, document: SourceDocument) -> list[ExtractedPage]:
        """Return page-indexed text; raise ExtractionError when unreadable."""
        ...


class LLMGateway(Protocol):
    async def complete(
        self,
        prompt: str,
        history: list[ChatMessage] | None = None,
        cancel: CancellationSignal | None = None,
    ) -> str:
        """Return the model's text reply; raise GatewayError on failure."""
        ...


class ReferenceResolver(Protocol):
    async def resolve(self, reference_ids: list[str], max_count: int) -> list[ReferenceSummary]:
        ...


class AssessmentStorage(Protocol):
    async def materialize(
        self,
        template_id: str,
        project_name: str,
        draft: DraftSections,
        estimates: ColumnEstimates,
        *,
        template_name: str = "",
    ) -> ProjectAssessment:
        ...
