import io
import logging
from typing import Optional

from docx import Document
from pypdf import PdfReader
from pypdf.errors import PdfReadError


logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def is_pdf(mime_type: str, name: str = "") -> bool:
    return mime_type == PDF_MIME or name.lower().endswith(".pdf")


def is_docx(mime_type: str, name: str = "") -> bool:
    return mime_type == DOCX_MIME or name.lower().endswith(".docx")


def pdf_page_count(data: bytes) -> Optional[int]:
    try:
        return len(PdfReader(io.BytesIO(data)).pages)
    except (PdfReadError, ValueError, OSError) as e:
        logger.warning("Could not read PDF page count: %s", e)
        return None


def docx_text(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    texts = []
    for p in doc.paragraphs:
        txt = (p.text or "").strip()
        if txt:
            texts.append(txt)
    for table in doc.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text and c.text.strip()]
            if cells:
                texts.append(" | ".join(cells))
    return "\n".join(texts)
