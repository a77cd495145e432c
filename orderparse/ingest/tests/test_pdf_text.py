from __future__ import annotations

import fitz  # PyMuPDF

from orderparse.ingest.pdf_text import extract_pdf_pages, extract_pdf_text


def _two_page_pdf() -> bytes:
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Pos. A1 Aluminium System 70")
    doc.new_page().insert_text((72, 72), "Quantity: 4")
    data = doc.tobytes()
    doc.close()
    return data


def test_pages_are_extracted_in_order():
    pages = extract_pdf_pages(_two_page_pdf())
    assert len(pages) == 2
    assert "Pos. A1" in pages[0]
    assert "Quantity: 4" in pages[1]


def test_text_joins_pages():
    text = extract_pdf_text(_two_page_pdf())
    assert text.index("Pos. A1") < text.index("Quantity: 4")


def test_corrupt_bytes_give_empty_text():
    assert extract_pdf_text(b"definitely not a pdf") == ""
    assert extract_pdf_text(b"") == ""
