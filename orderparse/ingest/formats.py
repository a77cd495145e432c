from __future__ import annotations

from enum import Enum
from typing import Optional

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")
SPREADSHEET_MIME_HINTS = ("spreadsheet", "excel", "application/vnd.ms-excel")
PDF_MIME_HINT = "application/pdf"


class AttachmentKind(str, Enum):
    SPREADSHEET = "spreadsheet"
    PDF = "pdf"


def is_spreadsheet_like(name: str, mime_type: Optional[str] = None) -> bool:
    lower_name = (name or "").lower()
    lower_mime = (mime_type or "").lower()
    return lower_name.endswith(SPREADSHEET_EXTENSIONS) or any(
        h in lower_mime for h in SPREADSHEET_MIME_HINTS
    )


def is_pdf_like(name: str, mime_type: Optional[str] = None) -> bool:
    lower_name = (name or "").lower()
    lower_mime = (mime_type or "").lower()
    return lower_name.endswith(".pdf") or PDF_MIME_HINT in lower_mime


def classify_attachment(name: str, mime_type: Optional[str] = None) -> Optional[AttachmentKind]:
    """
    Spreadsheet wins over PDF when both match; None for anything else
    (callers reject those before parsing).
    """
    if is_spreadsheet_like(name, mime_type):
        return AttachmentKind.SPREADSHEET
    if is_pdf_like(name, mime_type):
        return AttachmentKind.PDF
    return None


def guess_mime_type(name: str) -> str:
    lower = (name or "").lower()
    if lower.endswith(".xlsx"):
        return "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    if lower.endswith(".xls"):
        return "application/vnd.ms-excel"
    if lower.endswith(".pdf"):
        return PDF_MIME_HINT
    return "application/octet-stream"
