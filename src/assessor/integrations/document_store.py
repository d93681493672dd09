"""Filesystem storage for uploaded scope documents."""

import asyncio
import logging
import re
import shutil
from pathlib import Path

from assessor.errors.exceptions import ExtractionError, ValidationError
from assessor.pipeline.contracts import SourceDocument
from assessor.services.id_generator import generate_id

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(file_name: str) -> str:
    name = _UNSAFE_CHARS.sub("_", Path(file_name).name).strip("._")
    return name or "document"


class DocumentStore:
    """Keeps each upload under ``<root>/<doc id>/<file name>``; the relative path is the ref."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _path(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        if self.root not in path.parents:
            raise ValidationError(f"Invalid document reference '{ref}'")
        return path

    async def save(self, file_name: str, content: bytes, mime_type: str | None = None) -> SourceDocument:
        if not content:
            raise ValidationError("Uploaded document is empty")
        ref = f"{generate_id('doc_')}/{_safe_name(file_name)}"
        path = self._path(ref)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await asyncio.to_thread(_write)
        logger.info("Stored document %s (%d bytes)", ref, len(content))
        return SourceDocument(ref=ref, file_name=file_name, mime_type=mime_type)

    async def read(self, ref: str) -> bytes:
        path = self._path(ref)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ExtractionError(f"Source document '{ref}' is no longer available") from exc

    async def delete(self, ref: str) -> bool:
        path = self._path(ref)
        folder = path.parent
        if folder == self.root:
            if not path.exists():
                return False
            await asyncio.to_thread(path.unlink)
            return True
        if not folder.exists():
            return False
        await asyncio.to_thread(shutil.rmtree, folder)
        logger.info("Deleted document %s", ref)
        return True
