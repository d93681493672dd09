"""Stage artifacts and the materialized ProjectAssessment."""

from collections.abc import Iterator
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from assessor.models.enums import ItemCategory


class DraftItem(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    item_id: str
    item_name: str
    item_detail: str = ""
    category: ItemCategory = ItemCategory.NEW_UI


class DraftSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    section_name: str
    section_type: str
    items: list[DraftItem] = Field(default_factory=list)


class DraftSections(BaseModel):
    """Generation artifact: ordered sections of ordered items."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sections: list[DraftSection] = Field(default_factory=list)

    def iter_items(self) -> Iterator[DraftItem]:
        for section in self.sections:
            yield from section.items

    def item_ids(self) -> list[str]:
        return [item.item_id for item in self.iter_items()]


class ItemEstimate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_needed: bool = True
    hours: dict[str, float] = Field(default_factory=dict)


class ColumnEstimates(BaseModel):
    """Estimation artifact: item id -> (estimation column -> hours).

    Always defined over exactly the items of the DraftSections it was produced from.
    """

    model_config = ConfigDict(extra="forbid")

    columns: list[str] = Field(default_factory=list)
    items: dict[str, ItemEstimate] = Field(default_factory=dict)

    def item_ids(self) -> set[str]:
        return set(self.items)

    @classmethod
    def zeros(cls, draft: DraftSections, columns: list[str]) -> "ColumnEstimates":
        return cls(
            columns=list(columns),
            items={
                item_id: ItemEstimate(hours={column: 0.0 for column in columns})
                for item_id in draft.item_ids()
            },
        )


class AssessmentItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item_id: str
    item_name: str
    item_detail: str = ""
    category: ItemCategory = ItemCategory.NEW_UI
    is_needed: bool = True
    estimates: dict[str, float] = Field(default_factory=dict)


class AssessmentSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    section_name: str
    section_type: str
    items: list[AssessmentItem] = Field(default_factory=list)


class ProjectAssessment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    assessment_id: str | None = None
    template_id: str
    template_name: str
    project_name: str
    status: str = "draft"
    estimation_columns: list[str] = Field(default_factory=list)
    sections: list[AssessmentSection] = Field(default_factory=list)
    created_at: datetime | None = None
    last_modified_at: datetime | None = None

    def total_hours(self) -> float:
        return sum(
            hours
            for section in self.sections
            for item in section.items
            if item.is_needed
            for hours in item.estimates.values()
        )


def build_assessment(
    template_id: str,
    template_name: str,
    project_name: str,
    draft: DraftSections,
    estimates: ColumnEstimates,
) -> ProjectAssessment:
    """Join the two stage artifacts into an unsaved ProjectAssessment."""
    sections = []
    for draft_section in draft.sections:
        items = []
        for item in draft_section.items:
            estimate = estimates.items.get(item.item_id) or ItemEstimate()
            items.append(
                AssessmentItem(
                    item_id=item.item_id,
                    item_name=item.item_name,
                    item_detail=item.item_detail,
                    category=item.category,
                    is_needed=estimate.is_needed,
                    estimates={
                        column: float(estimate.hours.get(column, 0.0))
                        for column in estimates.columns
                    },
                )
            )
        sections.append(
            AssessmentSection(
                section_name=draft_section.section_name,
                section_type=draft_section.section_type,
                items=items,
            )
        )
    return ProjectAssessment(
        template_id=template_id,
        template_name=template_name,
        project_name=project_name,
        estimation_columns=list(estimates.columns),
        sections=sections,
    )


class ReferenceItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item_id: str
    item_name: str = ""
    category: ItemCategory = ItemCategory.NEW_UI
    estimates: dict[str, float] = Field(default_factory=dict)


class ReferenceSummary(BaseModel):
    """A prior assessment condensed for use as few-shot context and calibration."""

    model_config = ConfigDict(extra="forbid")

    reference_id: str
    project_name: str
    total_hours: float = 0.0
    items: list[ReferenceItem] = Field(default_factory=list)


class ReferenceDocument(BaseModel):
    """Knowledge-base summary supplied alongside the scope document."""

    model_config = ConfigDict(extra="forbid")

    source: str
    summary: str


class ReferenceContext(BaseModel):
    """Everything resolved at job creation so resume never re-resolves."""

    model_config = ConfigDict(extra="forbid")

    reference_ids: list[str] = Field(default_factory=list)
    assessments: list[ReferenceSummary] = Field(default_factory=list)
    documents: list[ReferenceDocument] = Field(default_factory=list)
