"""Turn loosely structured AI output into typed stage artifacts.

Parsing never raises: it yields ``Parsed`` or ``Malformed``. A ``Malformed``
result gets exactly one repair round-trip through the gateway before the
calling stage gives up on it.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from assessor.models.assessment import (
    ColumnEstimates,
    DraftItem,
    DraftSection,
    DraftSections,
    ItemEstimate,
    ReferenceSummary,
)
from assessor.models.enums import ItemCategory
from assessor.models.template import ProjectTemplate
from assessor.pipeline.cancellation import CancellationSignal
from assessor.pipeline.contracts import ChatMessage, LLMGateway
from assessor.pipeline.estimation_policy import EstimationPolicy, reference_baseline
from assessor.pipeline.prompts import build_repair_prompt
from assessor.services.id_generator import generate_item_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ESTIMATION_COLUMN = "EffortHours"


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T
    raw: str


@dataclass(frozen=True)
class Malformed:
    raw: str
    reason: str


def strip_code_fences(raw_text: str | None) -> str:
    """Strip surrounding markdown fences (```json ... ```) from a model reply."""
    if not raw_text:
        return ""
    content = raw_text.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
        if "```" in content:
            content = content.rsplit("```", 1)[0]
    return content.strip()


def _load_json(raw: str) -> tuple[Any, str | None]:
    try:
        return json.loads(strip_code_fences(raw)), None
    except json.JSONDecodeError as exc:
        return None, f"invalid JSON ({exc.msg} at line {exc.lineno} column {exc.colno})"


def _coerce_hours(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        if math.isfinite(number) and number > 0:
            return number
    return 0.0


def _coerce_bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return default


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def parse_generated_items(raw: str | None) -> Parsed[list[dict]] | Malformed:
    """Accept a JSON array of items or an object holding an ``items`` array.

    An empty reply means the model proposed nothing new.
    """
    raw = raw or ""
    if not strip_code_fences(raw):
        return Parsed([], raw)
    data, error = _load_json(raw)
    if error:
        return Malformed(raw, error)
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        return Malformed(raw, "expected a JSON array of items or an object with an 'items' array")
    return Parsed([entry for entry in data if isinstance(entry, dict)], raw)


def build_draft(template: ProjectTemplate, generated: list[dict]) -> DraftSections:
    """Template sections plus the generated items, dealt round-robin into AI-Generated sections."""
    new_items: list[DraftItem] = []
    for entry in generated:
        name = str(entry.get("itemName") or "").strip()
        if not name:
            continue
        new_items.append(
            DraftItem(
                item_id=generate_item_id(),
                item_name=name,
                item_detail=str(entry.get("itemDetail") or "").strip(),
                category=ItemCategory.normalize(entry.get("category") if isinstance(entry.get("category"), str) else None),
            )
        )

    section_items: list[list[DraftItem]] = [
        [
            DraftItem(
                item_id=item.item_id,
                item_name=item.item_name,
                item_detail=item.item_detail,
                category=item.category,
            )
            for item in section.items
        ]
        for section in template.sections
    ]
    section_names = [section.section_name for section in template.sections]
    section_types = [section.type for section in template.sections]

    targets = [index for index, section in enumerate(template.sections) if section.is_ai_generated]
    if new_items and not targets:
        section_names.append("AI-Generated Items")
        section_types.append("AI-Generated")
        section_items.append([])
        targets = [len(section_items) - 1]

    for position, item in enumerate(new_items):
        section_items[targets[position % len(targets)]].append(item)

    return DraftSections(
        sections=[
            DraftSection(section_name=name, section_type=kind, items=items)
            for name, kind, items in zip(section_names, section_types, section_items)
        ]
    )


# ---------------------------------------------------------------------------
# Estimation
# ---------------------------------------------------------------------------


def resolve_columns(template_columns: list[str], entries: list[dict]) -> list[str]:
    """Template columns (deduplicated case-insensitively), else columns seen in the reply."""
    columns: list[str] = []
    seen: set[str] = set()

    def _add(name: Any) -> None:
        if isinstance(name, str) and name.strip() and name.strip().lower() not in seen:
            seen.add(name.strip().lower())
            columns.append(name.strip())

    for column in template_columns:
        _add(column)
    if not columns:
        for entry in entries:
            estimates = entry.get("estimates")
            if isinstance(estimates, dict):
                for key in estimates:
                    _add(key)
    return columns or [DEFAULT_ESTIMATION_COLUMN]


def parse_estimates(
    raw: str | None,
    draft: DraftSections,
    template_columns: list[str],
    references: list[ReferenceSummary],
    policy: EstimationPolicy,
) -> Parsed[ColumnEstimates] | Malformed:
    """Reconcile an estimation reply against the draft's item set.

    Unknown item ids are dropped. Items the reply omits get zero hours.
    Proposed hours never exceed the complexity cap of the item's description.
    """
    raw = raw or ""
    if not strip_code_fences(raw):
        return Parsed(ColumnEstimates.zeros(draft, resolve_columns(template_columns, [])), raw)
    data, error = _load_json(raw)
    if error:
        return Malformed(raw, error)
    if isinstance(data, dict):
        data = data.get("items", [])
    if not isinstance(data, list):
        return Malformed(raw, "expected an object with an 'items' array")
    entries = [entry for entry in data if isinstance(entry, dict)]

    columns = resolve_columns(template_columns, entries)
    draft_items = {item.item_id.lower(): item for item in draft.iter_items()}
    estimates = ColumnEstimates.zeros(draft, columns)
    dropped: list[str] = []

    for entry in entries:
        item = draft_items.get(str(entry.get("itemId") or "").strip().lower())
        if item is None:
            dropped.append(str(entry.get("itemId")))
            continue
        is_needed = _coerce_bool(entry.get("isNeeded"), default=True)
        provided = entry.get("estimates") if isinstance(entry.get("estimates"), dict) else {}
        provided = {str(key).strip().lower(): value for key, value in provided.items()}
        cap = policy.complexity_cap(item.item_detail, item.category)
        hours: dict[str, float] = {}
        for column in columns:
            if not is_needed:
                hours[column] = 0.0
                continue
            baseline = reference_baseline(references, item.item_id, item.category, column)
            hours[column] = policy.normalize(_coerce_hours(provided.get(column.lower())), baseline, cap)
        estimates.items[item.item_id] = ItemEstimate(is_needed=is_needed, hours=hours)

    if dropped:
        logger.warning("Dropped estimates for %d unknown item(s): %s", len(dropped), ", ".join(dropped))
    return Parsed(estimates, raw)


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class ResultAssembler:
    """Parses stage replies and performs the single bounded repair attempt."""

    def __init__(self, gateway: LLMGateway, policy: EstimationPolicy | None = None):
        self._gateway = gateway
        self.policy = policy or EstimationPolicy()

    async def assemble_generation(
        self,
        raw: str,
        prompt: str,
        template: ProjectTemplate,
        cancel: CancellationSignal,
    ) -> Parsed[DraftSections] | Malformed:
        result = parse_generated_items(raw)
        if isinstance(result, Malformed):
            repaired = await self._repair(result, prompt, cancel)
            result = parse_generated_items(repaired)
        if isinstance(result, Malformed):
            return result
        return Parsed(build_draft(template, result.value), result.raw)

    async def assemble_estimation(
        self,
        raw: str,
        prompt: str,
        draft: DraftSections,
        template_columns: list[str],
        references: list[ReferenceSummary],
        cancel: CancellationSignal,
    ) -> Parsed[ColumnEstimates] | Malformed:
        result = parse_estimates(raw, draft, template_columns, references, self.policy)
        if isinstance(result, Malformed):
            repaired = await self._repair(result, prompt, cancel)
            result = parse_estimates(repaired, draft, template_columns, references, self.policy)
        return result

    async def _repair(self, malformed: Malformed, prompt: str, cancel: CancellationSignal) -> str:
        logger.warning("Malformed AI output (%s); requesting one repair", malformed.reason)
        history = [
            ChatMessage(role="user", content=prompt),
            ChatMessage(role="assistant", content=malformed.raw),
        ]
        return await cancel.guard(
            self._gateway.complete(build_repair_prompt(malformed.raw), history=history, cancel=cancel)
        )
