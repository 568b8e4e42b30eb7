import base64
import binascii
import logging
import re
import zipfile
from dataclasses import dataclass
from typing import List, Optional

from docx.opc.exceptions import PackageNotFoundError

from .gemini import GeminiClient, Part, file_part, inline_part, text_part
from .models import FileRef
from .parsers import docx_text, is_docx, is_pdf, pdf_page_count
from .storage import DEFAULT_MIME, ObjectStorage


logger = logging.getLogger(__name__)

# Decoded bytes; anything larger goes through the File API.
INLINE_BYTES_THRESHOLD = 4 * 1024 * 1024

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]*;base64,")


@dataclass
class ResolvedFile:
    name: str
    mime_type: str
    size: int
    part: Part
    page_count: Optional[int] = None


def decode_base64(data: str) -> bytes:
    return base64.b64decode(_DATA_URL_PREFIX.sub("", data.strip()))


def total_pdf_pages(files: List[ResolvedFile]) -> Optional[int]:
    counts = [f.page_count for f in files if f.page_count is not None]
    return sum(counts) if counts else None


class FileResolver:
    def __init__(self, storage: ObjectStorage, gemini: GeminiClient, bucket: str = "course-files",
                 inline_threshold: int = INLINE_BYTES_THRESHOLD):
        self.storage = storage
        self.gemini = gemini
        self.bucket = bucket
        self.inline_threshold = inline_threshold

    async def _load(self, ref: FileRef):
        if ref.storage_path:
            obj = await self.storage.download(self.bucket, ref.storage_path)
            mime = obj.mime_type
            if mime == DEFAULT_MIME and ref.type:
                mime = ref.type
            return obj.data, mime
        if ref.data:
            try:
                payload = decode_base64(ref.data)
            except (binascii.Error, ValueError):
                logger.warning("Skipping %s: invalid base64 payload", ref.name or "file")
                return None
            return payload, ref.type or DEFAULT_MIME
        return None

    async def resolve_one(self, ref: FileRef) -> Optional[ResolvedFile]:
        loaded = await self._load(ref)
        if loaded is None:
            return None
        payload, mime = loaded
        name = ref.name or ref.storage_path or "file"

        if is_docx(mime, name):
            try:
                text = docx_text(payload)
            except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as e:
                logger.warning("Skipping %s: unreadable DOCX (%s)", name, e)
                return None
            return ResolvedFile(name, mime, len(payload), text_part(f"[Document: {name}]\n{text}"))

        page_count = pdf_page_count(payload) if is_pdf(mime, name) else None
        if len(payload) <= self.inline_threshold:
            part = inline_part(mime, base64.b64encode(payload).decode("ascii"))
        else:
            remote = await self.gemini.upload_file(payload, mime, name)
            part = file_part(remote.mime_type, remote.uri)
        return ResolvedFile(name, mime, len(payload), part, page_count)

    async def resolve(self, refs: List[FileRef]) -> List[ResolvedFile]:
        resolved = []
        for ref in refs:
            item = await self.resolve_one(ref)
            if item is not None:
                resolved.append(item)
        return resolved
