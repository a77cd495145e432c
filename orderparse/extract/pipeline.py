"""
pipeline.py

Entry point for one parse request: attachment bytes + column schema in,
ParseResponse (or ParseFailure) out.

  spreadsheet  -> local reader                    ("xlsx-local")
  pdf          -> local text -> structured parser ("pdf-structured-parser")
               -> AI tier (ai_parser.AIRowExtractor)
               -> anchor sanitizer (model rows only)
               -> generic heuristic once more if nothing survived
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, List, Optional, Union

from orderparse.config import Settings, get_settings
from orderparse.errors import AttachmentError, ConfigurationError
from orderparse.extract.ai_parser import AIRowExtractor, Document
from orderparse.extract.anchors import sanitize_position_anchors
from orderparse.extract.heuristic import heuristic_rows
from orderparse.extract.normalize import normalize_rows
from orderparse.extract.schema import (
    Column,
    ParseFailure,
    ParseResponse,
    RawRow,
    load_columns,
)
from orderparse.extract.structured import parse_structured_rows
from orderparse.ingest.formats import AttachmentKind, classify_attachment, guess_mime_type
from orderparse.ingest.pdf_text import extract_pdf_text
from orderparse.ingest.spreadsheet import spreadsheet_rows
from orderparse.llm.ai_client import AIClient
from orderparse.llm.client_factory import create_ai_client

logger = logging.getLogger(__name__)

STRUCTURED_MODEL = "pdf-structured-parser"
FINAL_HEURISTIC_SUFFIX = " -> heuristic-final"


def _response(
    rows: List[RawRow], columns: List[Column], model: str, preview: str
) -> ParseResponse:
    parsed, mapping = normalize_rows(rows, columns)
    return ParseResponse(
        rows=parsed,
        mapping=mapping,
        detected_rows=len(parsed),
        parser_model=model,
        parser_raw_text_preview=preview,
    )


def validate_attachment(
    name: str, mime_type: Optional[str], data: bytes, settings: Settings
) -> AttachmentKind:
    kind = classify_attachment(name, mime_type)
    if kind is None:
        raise AttachmentError("Selected attachment must be PDF, XLSX, or XLS.")
    if len(data) > settings.max_file_size_bytes:
        limit_mb = settings.max_file_size_bytes // (1024 * 1024)
        raise AttachmentError(f"Attachment is too large (limit {limit_mb} MB).")
    return kind


async def parse_attachment(
    name: str,
    mime_type: Optional[str],
    data: bytes,
    columns: Iterable[Any],
    *,
    client: Optional[AIClient] = None,
    settings: Optional[Settings] = None,
    provider: str = "openai",
    clock: Callable[[], float] = time.monotonic,
) -> Union[ParseResponse, ParseFailure]:
    """
    Parse one attachment into rows for the given columns.

    Raises AttachmentError for requests that cannot be served (bad columns,
    unsupported or oversized file). Everything past that point ends in a
    ParseResponse, possibly with no rows, or in a ParseFailure when the AI
    tier is unconfigured or its upload failed.
    """
    cfg = settings or get_settings()
    schema = load_columns(columns)
    kind = validate_attachment(name, mime_type, data, cfg)
    mime = mime_type or guess_mime_type(name)

    if kind is AttachmentKind.SPREADSHEET:
        outcome = spreadsheet_rows(data, schema)
        logger.info("spreadsheet %s: %d raw rows", name, len(outcome.rows))
        return _response(outcome.rows, schema, outcome.model, "")

    text = extract_pdf_text(data)
    preview_chars = cfg.preview_chars

    structured = parse_structured_rows(text, schema)
    if structured:
        response = _response(structured, schema, STRUCTURED_MODEL, text[:preview_chars])
        if response.rows:
            logger.info("%s parsed by structured layout: %d rows", name, len(response.rows))
            return response

    if client is None:
        try:
            client = create_ai_client(provider, cfg)
        except ConfigurationError as e:
            logger.error("AI tier unavailable: %s", e)
            return ParseFailure(error=str(e), status_hint=e.status_hint)

    result = await AIRowExtractor(client, cfg, clock=clock).run(
        Document(name=name, mime_type=mime, data=data), schema, text
    )
    if isinstance(result, ParseFailure):
        return result

    source_text = result.raw_text if result.raw_text.strip() else text
    rows = result.rows
    if result.from_model:
        rows = sanitize_position_anchors(rows, schema, source_text)

    response = _response(rows, schema, result.model, result.raw_text[:preview_chars])
    if response.rows:
        logger.info("%s parsed by %s: %d rows", name, result.model, len(response.rows))
        return response

    fallback = heuristic_rows(source_text, schema)
    if fallback:
        final = _response(
            fallback, schema, result.model + FINAL_HEURISTIC_SUFFIX, source_text[:preview_chars]
        )
        if final.rows:
            logger.info("%s parsed by final heuristic pass", name)
            return final

    logger.info("%s: no rows found (%s)", name, result.model or "no attempts")
    return response
