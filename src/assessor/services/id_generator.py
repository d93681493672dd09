"""Identifiers for jobs, templates, assessments, documents and generated items."""

import uuid

# Record ids: "asj_" jobs, "tpl_" templates, "asm_" assessments, "doc_" uploads.
_RECORD_ID_HEX_CHARS = 16


def generate_id(prefix: str) -> str:
    return prefix + uuid.uuid4().hex[:_RECORD_ID_HEX_CHARS]


def generate_item_id() -> str:
    """Full-length id so generated items never collide with template item ids like "1.1"."""
    return f"ai-{uuid.uuid4().hex}"
