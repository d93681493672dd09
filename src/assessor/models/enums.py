"""String enums shared across the pipeline, persistence and API layers."""

from enum import StrEnum


class JobStatus(StrEnum):
    PENDING = "pending"
    GENERATION_IN_PROGRESS = "generation_in_progress"
    GENERATION_COMPLETE = "generation_complete"
    ESTIMATION_IN_PROGRESS = "estimation_in_progress"
    ESTIMATION_COMPLETE = "estimation_complete"
    COMPLETE = "complete"
    FAILED_GENERATION = "failed_generation"
    FAILED_ESTIMATION = "failed_estimation"


class AnalysisMode(StrEnum):
    STRICT = "strict"
    INTERPRETIVE = "interpretive"


class OutputLanguage(StrEnum):
    ENGLISH = "english"
    INDONESIAN = "indonesian"


class ItemCategory(StrEnum):
    NEW_UI = "New UI"
    NEW_INTERFACE = "New Interface"
    NEW_BACKGROUNDER = "New Backgrounder"
    ADJUST_EXISTING_UI = "Adjust Existing UI"
    ADJUST_EXISTING_LOGIC = "Adjust Existing Logic"

    @classmethod
    def normalize(cls, value: str | None) -> "ItemCategory":
        """Case-insensitive match against the known categories; unknown values become New UI."""
        if value:
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return cls.NEW_UI


class SectionType(StrEnum):
    PROJECT_LEVEL = "Project-Level"
    AI_GENERATED = "AI-Generated"
