"""Normalization applied to AI-proposed hours before they are checkpointed."""

import math
import statistics
from dataclasses import dataclass, field

from assessor.config import DEFAULT_BASE_HOURS_BY_CATEGORY, EstimationPolicySettings
from assessor.models.assessment import ReferenceSummary
from assessor.models.enums import ItemCategory

SIZE_CLASSES = ("XS", "S", "M", "L", "XL")
FALLBACK_BANDS = (4.0, 8.0, 16.0, 32.0, 56.0)

# Keyword lists cover English and Indonesian scope documents.
_FIELD_KEYWORDS = ("field", "kolom", "input")
_INTEGRATION_KEYWORDS = ("integrasi", "api", "webhook", "gateway")
_WORKFLOW_KEYWORDS = ("approval", "review", "step", "tahap")
_AUTH_KEYWORDS = ("role", "otorisasi", "permission")
_CREATE_KEYWORDS = ("create", "tambah", "buat")
_READ_KEYWORDS = ("read", "lihat", "daftar")
_UPDATE_KEYWORDS = ("update", "ubah", "edit")
_DELETE_KEYWORDS = ("delete", "hapus")


def _count(text: str, keywords: tuple[str, ...]) -> int:
    return sum(1 for keyword in keywords if keyword in text)


@dataclass(frozen=True)
class ComplexitySignals:
    """Keyword signals read from an item's description."""

    fields: int = 0
    integrations: int = 0
    workflow_steps: int = 0
    has_upload: bool = False
    has_auth_role: bool = False
    has_create: bool = False
    has_read: bool = False
    has_update: bool = False
    has_delete: bool = False

    @classmethod
    def from_detail(cls, detail: str | None) -> "ComplexitySignals":
        text = (detail or "").lower()
        if not text.strip():
            return cls()
        return cls(
            fields=_count(text, _FIELD_KEYWORDS),
            integrations=_count(text, _INTEGRATION_KEYWORDS),
            workflow_steps=_count(text, _WORKFLOW_KEYWORDS),
            has_upload="upload" in text,
            has_auth_role=_count(text, _AUTH_KEYWORDS) > 0,
            has_create=_count(text, _CREATE_KEYWORDS) > 0,
            has_read=_count(text, _READ_KEYWORDS) > 0,
            has_update=_count(text, _UPDATE_KEYWORDS) > 0,
            has_delete=_count(text, _DELETE_KEYWORDS) > 0,
        )

    def score(self) -> float:
        """Complexity score in [0, 100]."""
        value = self.fields * 1.8 + self.integrations * 15 + self.workflow_steps * 6
        if self.has_upload:
            value += 6
        if self.has_auth_role:
            value += 10
        crud = sum((self.has_create, self.has_read, self.has_update, self.has_delete))
        value += crud * 4
        return min(100.0, value)


def _size_from_score(score: float, signals: ComplexitySignals) -> str:
    if score <= 8:
        size = "XS"
    elif score <= 18:
        size = "S"
    elif score <= 32:
        size = "M"
    elif score <= 55:
        size = "L"
    else:
        size = "XL"

    rank = SIZE_CLASSES.index
    if signals.integrations >= 2 and rank(size) < rank("M"):
        size = "M"
    if signals.integrations >= 3 and rank(size) < rank("L"):
        size = "L"
    if signals.fields >= 25 and rank(size) < rank("L"):
        size = "L"
    if signals.fields <= 3 and rank(size) > rank("S"):
        size = "S"
    return size


@dataclass(frozen=True)
class EstimationPolicy:
    round_to_hours: float = 0.5
    hard_min_hours: float = 1.0
    hard_max_hours: float = 80.0
    reference_median_cap_multiplier: float = 1.10
    global_shrinkage_to_median: float = 0.9
    base_hours_by_category: dict[str, tuple[float, float, float, float, float]] = field(
        default_factory=lambda: dict(DEFAULT_BASE_HOURS_BY_CATEGORY)
    )
    crud_create_multiplier: float = 1.0
    crud_read_multiplier: float = 0.7
    crud_update_multiplier: float = 0.9
    crud_delete_multiplier: float = 0.6
    per_field_hours: float = 0.15
    per_integration_hours: float = 6.0
    file_upload_hours: float = 2.0
    auth_roles_hours: float = 3.0
    workflow_step_hours: float = 1.5
    cap_adjust_categories_to_max_m: bool = True

    @classmethod
    def from_settings(cls, policy: EstimationPolicySettings) -> "EstimationPolicy":
        return cls(**policy.model_dump())

    # -- complexity cap -----------------------------------------------------

    def bands_for(self, category: ItemCategory) -> tuple[float, float, float, float, float]:
        wanted = category.value.lower()
        for name, bands in self.base_hours_by_category.items():
            if name.lower() == wanted:
                return tuple(bands)
        return FALLBACK_BANDS

    def size_class(self, category: ItemCategory, signals: ComplexitySignals) -> str:
        size = _size_from_score(signals.score(), signals)
        adjusting = category in (ItemCategory.ADJUST_EXISTING_UI, ItemCategory.ADJUST_EXISTING_LOGIC)
        if adjusting and self.cap_adjust_categories_to_max_m and SIZE_CLASSES.index(size) > SIZE_CLASSES.index("M"):
            size = "M"
        return size

    @staticmethod
    def band_midpoint(bands: tuple[float, float, float, float, float], size: str) -> float:
        xs, s, m, l, xl = bands
        return {
            "XS": xs,
            "S": (xs + s) / 2,
            "M": (s + m) / 2,
            "L": (m + l) / 2,
            "XL": (l + xl) / 2,
        }.get(size, s)

    def crud_multiplier(self, signals: ComplexitySignals) -> float:
        multiplier = 1.0
        if signals.has_create:
            multiplier *= self.crud_create_multiplier
        if signals.has_read:
            multiplier *= self.crud_read_multiplier
        if signals.has_update:
            multiplier *= self.crud_update_multiplier
        if signals.has_delete:
            multiplier *= self.crud_delete_multiplier
        return multiplier

    def complexity_cap(self, item_detail: str | None, category: ItemCategory) -> float:
        """Most hours an item may carry given the signals in its description.

        The band midpoint for the item's size class, scaled by the CRUD
        multiplier, plus a fixed adder per field, integration, upload, auth
        role and workflow step.
        """
        signals = ComplexitySignals.from_detail(item_detail)
        bands = self.bands_for(category)
        base = self.band_midpoint(bands, self.size_class(category, signals)) * self.crud_multiplier(signals)
        return (
            base
            + signals.fields * self.per_field_hours
            + signals.integrations * self.per_integration_hours
            + (self.file_upload_hours if signals.has_upload else 0.0)
            + (self.auth_roles_hours if signals.has_auth_role else 0.0)
            + signals.workflow_steps * self.workflow_step_hours
        )

    # -- normalization ------------------------------------------------------

    def shrink(self, raw: float, baseline: float | None) -> float:
        if baseline is None or baseline <= 0:
            return raw
        capped = min(raw, baseline * self.reference_median_cap_multiplier)
        return min(capped, baseline * self.global_shrinkage_to_median)

    def clamp(self, value: float) -> float:
        return max(self.hard_min_hours, min(self.hard_max_hours, value))

    def round(self, value: float) -> float:
        step = self.round_to_hours
        if step <= 0:
            return value
        # half away from zero, not banker's rounding
        return math.floor(value / step + 0.5) * step

    def normalize(self, raw: float, baseline: float | None = None, cap: float | None = None) -> float:
        """Cap by complexity, shrink toward the reference baseline, clamp, then round.

        Only positive values are normalized; anything else is zero.
        """
        if raw <= 0:
            return 0.0
        if cap is not None:
            raw = min(raw, cap)
        return self.round(self.clamp(self.shrink(raw, baseline)))


def reference_baseline(
    references: list[ReferenceSummary],
    item_id: str,
    category: ItemCategory,
    column: str,
) -> float | None:
    """min(median, geometric mean) of comparable reference hours for one column.

    Hours recorded for the same item id win; otherwise every reference item
    of the same category is used.
    """
    per_item: list[float] = []
    per_category: list[float] = []
    wanted_id = item_id.lower()
    for reference in references:
        for ref_item in reference.items:
            value = ref_item.estimates.get(column)
            if value is None or value <= 0:
                continue
            if ref_item.item_id.lower() == wanted_id:
                per_item.append(value)
            elif ref_item.category == category:
                per_category.append(value)

    source = per_item or per_category
    if not source:
        return None
    median = statistics.median(source)
    geo_mean = statistics.geometric_mean(source)
    return min(median, geo_mean)
