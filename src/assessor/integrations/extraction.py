"""Local text extraction for PDF, DOCX and plain-text scope documents."""

import asyncio
import io
import logging
import re

import docx
import pymupdf

from assessor.errors.exceptions import ExtractionError
from assessor.integrations.document_store import DocumentStore
from assessor.pipeline.contracts import ExtractedPage, SourceDocument

logger = logging.getLogger(__name__)

CHARS_PER_PAGE = 3000

_PDF_TYPES = ("application/pdf",)
_DOCX_TYPES = ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",)


def decode_text_with_fallback(raw: bytes) -> str:
    for encoding in ("utf-8-sig", "utf-16", "latin-1"):
        try:
            text = raw.decode(encoding)
        except UnicodeDecodeError:
            continue
        if encoding == "utf-16" and not raw.startswith((b"\xff\xfe", b"\xfe\xff")):
            continue
        return text.replace("\r\n", "\n").replace("\r", "\n")
    raise ExtractionError("Text encoding is not supported")


def paginate(paragraphs: list[str], chars_per_page: int = CHARS_PER_PAGE) -> list[ExtractedPage]:
    """Group paragraphs into synthetic pages for formats without real pagination."""
    pages: list[ExtractedPage] = []
    current: list[str] = []
    size = 0
    for paragraph in paragraphs:
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        current.append(paragraph)
        size += len(paragraph)
        if size >= chars_per_page:
            pages.append(ExtractedPage(len(pages) + 1, "\n\n".join(current)))
            current, size = [], 0
    if current:
        pages.append(ExtractedPage(len(pages) + 1, "\n\n".join(current)))
    return pages


def extract_pdf(content: bytes) -> list[ExtractedPage]:
    try:
        doc = pymupdf.open(stream=content, filetype="pdf")
    except Exception as exc:
        raise ExtractionError(f"Failed to open PDF: {exc}") from exc
    if doc.page_count == 0:
        doc.close()
        raise ExtractionError("PDF has no pages")

    pages: list[ExtractedPage] = []
    try:
        for page_idx in range(len(doc)):
            text = doc[page_idx].get_text("text").strip()
            if text:
                pages.append(ExtractedPage(page_idx + 1, text))
    finally:
        doc.close()
    return pages


def extract_docx(content: bytes) -> list[ExtractedPage]:
    try:
        document = docx.Document(io.BytesIO(content))
    except Exception as exc:
        raise ExtractionError(f"Failed to open DOCX: {exc}") from exc

    paragraphs = [para.text for para in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                paragraphs.append(" | ".join(cells))
    return paginate(paragraphs)


def extract_plain_text(content: bytes) -> list[ExtractedPage]:
    text = decode_text_with_fallback(content)
    return paginate(re.split(r"\n{2,}", text))


def extract_bytes(content: bytes, file_name: str, mime_type: str | None = None) -> list[ExtractedPage]:
    lower = file_name.lower()
    if lower.endswith(".pdf") or mime_type in _PDF_TYPES:
        return extract_pdf(content)
    if lower.endswith(".docx") or mime_type in _DOCX_TYPES:
        return extract_docx(content)
    if lower.endswith(".doc"):
        raise ExtractionError("Legacy .doc files are not supported; save the document as .docx or PDF")
    return extract_plain_text(content)


class LocalDocumentExtractor:
    """Reads a stored upload and converts it to page-indexed text off the event loop."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def extract(self, document: SourceDocument) -> list[ExtractedPage]:
        content = await self.store.read(document.ref)
        pages = await asyncio.to_thread(extract_bytes, content, document.file_name, document.mime_type)
        logger.info("Extracted %d page(s) from %s", len(pages), document.file_name)
        return pages
