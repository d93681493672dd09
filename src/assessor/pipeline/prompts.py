"""Prompt builders for the generation, estimation and repair calls."""

import json

from assessor.models.assessment import DraftSections, ReferenceContext
from assessor.models.enums import AnalysisMode, ItemCategory, OutputLanguage
from assessor.models.template import ProjectTemplate
from assessor.pipeline.contracts import ExtractedPage
from assessor.pipeline.estimation_policy import EstimationPolicy

REPAIR_PROMPT = (
    "Correct any syntax errors in the following text to make it a perfectly valid JSON object. "
    "Do not alter the data or content within the JSON structure. "
    "Respond ONLY with the corrected JSON object."
)

_GENERATION_OUTPUT_RULES = (
    "Return ONLY JSON array of {itemName,itemDetail,category}. Avoid splitting trivial variants; "
    "prefer merge unless estimation impact > S. If similar component exists in references, "
    "append tag [REUSE] in itemDetail."
)

_ESTIMATION_RULES = "\n".join([
    "Rules:",
    "- For each item, determine the relevant estimation columns based on the work described. "
    "Assign effort hours ONLY to these columns. All other columns for that item MUST be 0.",
    "- The sum of the hours across all columns for an item should reflect its total complexity.",
    "- Infer roles from itemName and itemDetail: UI implies frontend, database or API implies backend, "
    "requirement implies business analysis, test scenario implies QA.",
    "- Do NOT exceed the reference median by more than 10% unless strongly justified.",
    "- For Adjust Existing UI or Adjust Existing Logic, keep the size at M or below unless explicitly justified.",
    "- Classify scope fit and set isNeeded accordingly.",
    '- Respond ONLY JSON object: { "items": [ { "itemId": "...", "isNeeded": true, '
    '"estimates": { "<column>": <hours> } } ] } with numbers in hours (decimals allowed). No markdown.',
])


def _dump(payload: dict) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _documents_payload(context: ReferenceContext) -> list[dict]:
    return [
        {"source": doc.source.strip(), "summary": doc.summary.strip()}
        for doc in context.documents
        if doc.source.strip() and doc.summary.strip()
    ]


def render_pages(pages: list[ExtractedPage]) -> str:
    return "\n\n".join(f"[Page {page.page_number}]\n{page.text.strip()}" for page in pages if page.text.strip())


def build_generation_prompt(
    template: ProjectTemplate,
    project_name: str,
    pages: list[ExtractedPage],
    context: ReferenceContext,
    analysis_mode: AnalysisMode,
    output_language: OutputLanguage,
) -> str:
    documents = _documents_payload(context)
    if analysis_mode == AnalysisMode.STRICT:
        parts = [
            "You are a meticulous business analyst reviewing the attached scope document. "
            "Translate every explicitly described requirement into backlog items for the sections "
            "marked as AI-Generated. Do not invent new scope beyond what the document states."
        ]
    else:
        parts = [
            "You are a senior business analyst reviewing the attached scope document. "
            "Identify additional backlog items that should be considered for the sections marked as AI-Generated."
        ]
    parts.append(
        "Extract only in-scope backlog items. Prefer merging trivial UI fragments that do not materially "
        "change estimates. Category must be one of "
        + ", ".join(category.value for category in ItemCategory)
        + "."
    )
    if output_language == OutputLanguage.INDONESIAN:
        parts.append("Return itemName and itemDetail written in Bahasa Indonesia.")
    else:
        parts.append("Return itemName and itemDetail written in English.")
    if documents:
        if analysis_mode == AnalysisMode.STRICT:
            parts.append(
                "Use the provided knowledge base summaries only to clarify terminology; "
                "never introduce functionality that is absent from the scope document."
            )
        else:
            parts.append(
                "Leverage the provided knowledge base summaries when they clarify requirements "
                "or provide helpful precedents."
            )

    project_context = {
        "projectName": project_name,
        "sections": [
            {
                "sectionName": section.section_name,
                "existingItems": [
                    {
                        "itemName": item.item_name,
                        "itemDetail": item.item_detail,
                        "category": item.category.value,
                    }
                    for item in section.items
                ],
            }
            for section in template.sections
            if section.is_ai_generated
        ],
        "referenceDocuments": documents,
    }
    return (
        f"{' '.join(parts)}\n\n"
        f"Project Context:\n{_dump(project_context)}\n\n"
        f"{_GENERATION_OUTPUT_RULES}\n\n"
        f"Scope Document:\n{render_pages(pages)}"
    )


def build_estimation_prompt(
    draft: DraftSections,
    columns: list[str],
    project_name: str,
    context: ReferenceContext,
    analysis_mode: AnalysisMode,
    output_language: OutputLanguage,
    policy: EstimationPolicy,
) -> str:
    documents = _documents_payload(context)
    if analysis_mode == AnalysisMode.STRICT:
        parts = [
            "You are an experienced software project estimator. The backlog items were transcribed "
            "directly from the uploaded scope document. Evaluate each item exactly as written and "
            "determine whether it remains in scope for this project."
        ]
    else:
        parts = [
            "You are an experienced software project estimator. Review every item provided in the "
            "context and decide if it is needed for the uploaded scope document."
        ]
    if documents:
        if analysis_mode == AnalysisMode.STRICT:
            parts.append(
                "Use the supplied knowledge base summaries only for clarification; "
                "do not broaden the scope beyond the document."
            )
        else:
            parts.append("Consider the supplied knowledge base summaries when they add relevant background or precedent.")
    if context.assessments:
        parts.append(
            "Use the similar assessment history to calibrate whether items are typically in scope "
            "and the scale of effort required for comparable projects."
        )
    parts.append("Apply the estimation policy provided in the context and keep estimates conservative and auditable.")
    if output_language == OutputLanguage.INDONESIAN:
        parts.append("Provide any textual justification in Bahasa Indonesia.")
    else:
        parts.append("Provide any textual justification in English.")

    payload = {
        "projectName": project_name,
        "estimationColumns": columns,
        "sections": [
            {
                "sectionName": section.section_name,
                "items": [
                    {
                        "itemId": item.item_id,
                        "itemName": item.item_name,
                        "itemDetail": item.item_detail,
                        "category": item.category.value,
                    }
                    for item in section.items
                ],
            }
            for section in draft.sections
        ],
        "similarAssessments": [
            {
                "projectName": reference.project_name,
                "totalHours": reference.total_hours,
                "items": [
                    {
                        "itemId": ref_item.item_id,
                        "itemName": ref_item.item_name,
                        "category": ref_item.category.value,
                        "estimates": {column: ref_item.estimates.get(column, 0.0) for column in columns},
                    }
                    for ref_item in reference.items
                ],
            }
            for reference in context.assessments
        ],
        "referenceDocuments": documents,
        "policy": {
            "roundToNearestHours": policy.round_to_hours,
            "hardMinHours": policy.hard_min_hours,
            "hardMaxHours": policy.hard_max_hours,
            "referenceMedianCapMultiplier": policy.reference_median_cap_multiplier,
        },
    }
    return f"{' '.join(parts)}\n\nProject Context:\n{_dump(payload)}\n\n{_ESTIMATION_RULES}"


def build_repair_prompt(malformed: str) -> str:
    return f"{REPAIR_PROMPT}\n\n{malformed}"
