"""Pydantic models for project templates."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assessor.models.enums import ItemCategory, SectionType


class TemplateItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item_id: str = Field(..., min_length=1)
    item_name: str = Field(..., min_length=1)
    item_detail: str = ""
    category: ItemCategory = ItemCategory.NEW_UI

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        return ItemCategory.normalize(value if isinstance(value, str) else None)


class TemplateSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    section_name: str = Field(..., min_length=1)
    type: str = SectionType.PROJECT_LEVEL.value
    items: list[TemplateItem] = Field(default_factory=list)

    @property
    def is_ai_generated(self) -> bool:
        return self.type.strip().lower() == SectionType.AI_GENERATED.value.lower()


class ProjectTemplate(BaseModel):
    """Template an assessment is built from; snapshotted onto each job at creation."""

    model_config = ConfigDict(extra="forbid")

    template_id: str
    template_name: str = Field(..., min_length=1)
    estimation_columns: list[str] = Field(default_factory=list)
    sections: list[TemplateSection] = Field(default_factory=list)


class CreateTemplateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    template_name: str = Field(..., min_length=1)
    estimation_columns: list[str] = Field(default_factory=list)
    sections: list[TemplateSection] = Field(default_factory=list)
