"""Estimation normalization tests."""

import json

import pytest

from assessor.config import EstimationPolicySettings
from assessor.models.assessment import DraftItem, DraftSection, DraftSections, ReferenceItem, ReferenceSummary
from assessor.models.enums import ItemCategory
from assessor.pipeline.assembler import parse_estimates
from assessor.pipeline.estimation_policy import ComplexitySignals, EstimationPolicy, reference_baseline


@pytest.fixture
def policy():
    return EstimationPolicy()


def test_from_settings_copies_every_field():
    settings = EstimationPolicySettings(hard_max_hours=40, round_to_hours=1)
    policy = EstimationPolicy.from_settings(settings)
    assert policy.hard_max_hours == 40
    assert policy.round_to_hours == 1
    assert policy.hard_min_hours == 1.0


@pytest.mark.parametrize(
    "raw, expected",
    [
        (0, 0.0),
        (-3, 0.0),
        (0.2, 1.0),
        (7.74, 7.5),
        (7.75, 8.0),
        (12, 12.0),
        (250, 80.0),
    ],
)
def test_normalize_clamps_and_rounds(policy, raw, expected):
    assert policy.normalize(raw) == expected


def test_shrink_pulls_toward_reference_baseline(policy):
    assert policy.shrink(20, 10) == pytest.approx(9.0)
    assert policy.shrink(5, 10) == 5
    assert policy.shrink(20, None) == 20
    assert policy.shrink(20, 0) == 20


def test_normalize_with_baseline(policy):
    assert policy.normalize(20, baseline=10) == 9.0


def _reference(*items):
    return ReferenceSummary(reference_id="asm_1", project_name="Old Portal", items=list(items))


def test_reference_baseline_prefers_same_item():
    references = [
        _reference(
            ReferenceItem(item_id="ai-1", category=ItemCategory.NEW_UI, estimates={"FE": 16}),
            ReferenceItem(item_id="ai-2", category=ItemCategory.NEW_UI, estimates={"FE": 2}),
        ),
        _reference(ReferenceItem(item_id="AI-1", category=ItemCategory.NEW_UI, estimates={"FE": 4})),
    ]
    # median 10, geometric mean 8
    assert reference_baseline(references, "ai-1", ItemCategory.NEW_UI, "FE") == pytest.approx(8.0)


def test_reference_baseline_falls_back_to_category():
    references = [
        _reference(
            ReferenceItem(item_id="x", category=ItemCategory.NEW_INTERFACE, estimates={"BE": 6}),
            ReferenceItem(item_id="y", category=ItemCategory.NEW_INTERFACE, estimates={"BE": 6}),
            ReferenceItem(item_id="z", category=ItemCategory.NEW_UI, estimates={"BE": 40}),
        )
    ]
    assert reference_baseline(references, "new", ItemCategory.NEW_INTERFACE, "BE") == pytest.approx(6.0)


def test_reference_baseline_ignores_zero_hours_and_other_columns():
    references = [_reference(ReferenceItem(item_id="a", estimates={"BE": 0, "FE": 5}))]
    assert reference_baseline(references, "a", ItemCategory.NEW_UI, "BE") is None
    assert reference_baseline([], "a", ItemCategory.NEW_UI, "BE") is None


# ---------------------------------------------------------------------------
# Complexity cap
# ---------------------------------------------------------------------------


def test_signals_from_detail_count_keywords():
    signals = ComplexitySignals.from_detail("Tambah data via API webhook, upload lampiran, role approval")
    assert signals.fields == 0
    assert signals.integrations == 2
    assert signals.workflow_steps == 1
    assert signals.has_upload is True
    assert signals.has_auth_role is True
    assert signals.has_create is True
    assert (signals.has_read, signals.has_update, signals.has_delete) == (False, False, False)
    assert signals.score() == pytest.approx(56.0)


def test_blank_detail_has_no_signals():
    assert ComplexitySignals.from_detail(None) == ComplexitySignals()
    assert ComplexitySignals.from_detail("   ").score() == 0


@pytest.mark.parametrize(
    "category, expected",
    [
        (ItemCategory.NEW_UI, 4.0),
        (ItemCategory.NEW_INTERFACE, 6.0),
        (ItemCategory.ADJUST_EXISTING_UI, 2.0),
    ],
)
def test_plain_items_are_capped_at_the_xs_band(policy, category, expected):
    assert policy.complexity_cap("", category) == pytest.approx(expected)


def test_cap_adds_per_signal_hours(policy):
    # Few fields keep the item at S: midpoint 6 plus 2 integrations, upload, auth and 1 step.
    cap = policy.complexity_cap("Tambah data via API webhook, upload lampiran, role approval", ItemCategory.NEW_UI)
    assert cap == pytest.approx(6 + 2 * 6 + 2 + 3 + 1.5)


def test_cap_scales_by_crud_multiplier(policy):
    assert policy.complexity_cap("Lihat dan hapus data", ItemCategory.NEW_UI) == pytest.approx(4 * 0.7 * 0.6)


def test_size_class_never_exceeds_s_with_few_fields(policy):
    signals = ComplexitySignals(integrations=3, workflow_steps=4, has_auth_role=True)
    assert policy.size_class(ItemCategory.NEW_UI, signals) == "S"
    assert policy.size_class(ItemCategory.NEW_UI, ComplexitySignals(fields=25)) == "L"


def test_adjust_categories_are_held_at_m(policy):
    signals = ComplexitySignals(fields=30, integrations=3)
    assert policy.size_class(ItemCategory.NEW_UI, signals) == "XL"
    assert policy.size_class(ItemCategory.ADJUST_EXISTING_LOGIC, signals) == "M"
    relaxed = EstimationPolicy(cap_adjust_categories_to_max_m=False)
    assert relaxed.size_class(ItemCategory.ADJUST_EXISTING_LOGIC, signals) == "XL"


def test_bands_come_from_settings():
    settings = EstimationPolicySettings(base_hours_by_category={"new ui": (10, 20, 30, 40, 50)})
    policy = EstimationPolicy.from_settings(settings)
    assert policy.complexity_cap("", ItemCategory.NEW_UI) == pytest.approx(10.0)
    # categories missing from the table fall back to the default bands
    assert policy.complexity_cap("", ItemCategory.NEW_INTERFACE) == pytest.approx(4.0)


def test_normalize_applies_cap_before_shrink(policy):
    assert policy.normalize(10, cap=4) == 4.0
    assert policy.normalize(3, cap=4) == 3.0
    assert policy.normalize(10, baseline=5) == 4.5
    assert policy.normalize(10, baseline=5, cap=3) == 3.0


def test_missing_or_zero_values_stay_zero_under_a_cap(policy):
    assert policy.normalize(0, cap=12) == 0.0
    assert policy.normalize(-1, cap=12) == 0.0


def test_parse_estimates_caps_by_item_detail(policy):
    draft = DraftSections(
        sections=[
            DraftSection(
                section_name="Features",
                section_type="AI-Generated",
                items=[
                    DraftItem(item_id="ai-1", item_name="Banner"),
                    DraftItem(item_id="ai-2", item_name="Sync", item_detail="Push orders to the ERP api"),
                ],
            )
        ]
    )
    raw = json.dumps(
        {
            "items": [
                {"itemId": "ai-1", "estimates": {"BE": 10, "FE": 0}},
                {"itemId": "ai-2", "estimates": {"BE": 10}},
            ]
        }
    )
    result = parse_estimates(raw, draft, ["BE", "FE"], [], policy)
    assert result.value.items["ai-1"].hours == {"BE": 4.0, "FE": 0.0}
    assert result.value.items["ai-2"].hours == {"BE": 10.0, "FE": 0.0}
