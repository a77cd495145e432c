from __future__ import annotations

import pytest

from orderparse.ingest.formats import AttachmentKind, classify_attachment, guess_mime_type


@pytest.mark.parametrize(
    "name, mime, expected",
    [
        ("order.xlsx", None, AttachmentKind.SPREADSHEET),
        ("ORDER.XLS", "", AttachmentKind.SPREADSHEET),
        ("export", "application/vnd.ms-excel", AttachmentKind.SPREADSHEET),
        (
            "sheet.bin",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            AttachmentKind.SPREADSHEET,
        ),
        ("drawing.pdf", None, AttachmentKind.PDF),
        ("scan", "application/pdf", AttachmentKind.PDF),
        # spreadsheet wins when both hints are present
        ("table.xlsx", "application/pdf", AttachmentKind.SPREADSHEET),
        ("notes.docx", "application/msword", None),
        ("", None, None),
    ],
)
def test_classify_attachment(name, mime, expected):
    assert classify_attachment(name, mime) == expected


def test_guess_mime_type():
    assert guess_mime_type("a.PDF") == "application/pdf"
    assert guess_mime_type("a.xls") == "application/vnd.ms-excel"
    assert guess_mime_type("a.xlsx").endswith("spreadsheetml.sheet")
    assert guess_mime_type("a.txt") == "application/octet-stream"
