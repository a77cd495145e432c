from __future__ import annotations

import logging
from typing import List

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)


def extract_pdf_pages(data: bytes) -> List[str]:
    """Plain text per page. Raises on unreadable input."""
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        return [doc.load_page(i).get_text("text") for i in range(doc.page_count)]
    finally:
        doc.close()


def extract_pdf_text(data: bytes) -> str:
    """
    Best-effort text layer of a PDF; "" when the bytes can't be read
    (scanned drawings without text end up here too and go to the AI tier).
    """
    if not data:
        return ""
    try:
        pages = extract_pdf_pages(data)
    except Exception as e:
        logger.warning("PDF text extraction failed: %s", e)
        return ""
    return "\n".join(pages).strip()
