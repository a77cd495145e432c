"""
ai_parser.py

AI tier of the cascade. Uploads the document once, then walks the candidate
models; each model gets a schema-constrained extraction request and, if that
yields nothing usable, a plain OCR request whose text goes back through the
local parsers. Everything runs under one wall-clock deadline and the uploaded
file is deleted on every exit path.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from orderparse.config import Settings, get_settings
from orderparse.errors import AIServiceError, AITimeoutError
from orderparse.extract.categories import Category, classify
from orderparse.extract.schema import (
    Column,
    ParseFailure,
    ParseOutcome,
    RawRow,
    SelectColumn,
)
from orderparse.extract.textrows import rows_from_any_text
from orderparse.llm.ai_client import AIClient

logger = logging.getLogger(__name__)

LOCAL_TEXT_MODEL = "local-pdf-text-heuristic"

# minimum time a call still gets once the deadline is close
CALL_GRACE_S = 1.0

PARSE_SYSTEM_PROMPT = (
    "You extract manufacturing row data from technical drawing PDFs. "
    "Use OCR/vision reading for labels, dimensions and the left-side specification "
    "blocks. Return only structured rows."
)
OCR_SYSTEM_PROMPT = (
    "Extract OCR-like plain text from the PDF. "
    "Preserve position/specification blocks and quantities."
)
OCR_USER_PROMPT = "Return only plain text extracted from the document."


@dataclass
class Document:
    name: str
    mime_type: str
    data: bytes = field(repr=False)


@dataclass
class ParseContext:
    """Deadline and bookkeeping shared by all stages of one AI parse."""

    deadline_at: float
    clock: Callable[[], float] = time.monotonic
    tried_models: List[str] = field(default_factory=list)
    best_text: str = ""

    @classmethod
    def start(
        cls, total_timeout_s: float, clock: Callable[[], float] = time.monotonic
    ) -> "ParseContext":
        return cls(deadline_at=clock() + total_timeout_s, clock=clock)

    def remaining(self) -> float:
        return self.deadline_at - self.clock()

    def has_time_left(self) -> bool:
        return self.remaining() > 0

    def call_timeout(self, per_call_s: float) -> float:
        return min(per_call_s, max(self.remaining(), CALL_GRACE_S))

    def offer_text(self, text: str) -> None:
        if len((text or "").strip()) > len(self.best_text.strip()):
            self.best_text = text

    def trail(self) -> str:
        return " -> ".join(self.tried_models)


# ---------- prompt & schema ----------


def prompt_columns(columns: List[Column]) -> List[Dict[str, Any]]:
    out = []
    for c in columns:
        is_select = isinstance(c, SelectColumn)
        out.append(
            {
                "key": c.key,
                "label": c.label,
                "aiKey": c.ai_key,
                "type": c.field_type,
                # position labels must come from the drawing, not from a list
                "options": (
                    c.options
                    if is_select and classify(c) is not Category.POSITION
                    else []
                ),
                "maxSelect": c.max_select if is_select else 1,
            }
        )
    return out


def row_json_schema(columns: List[Column]) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    for c in columns:
        if c.is_multi:
            properties[c.key] = {
                "anyOf": [
                    {"type": "string"},
                    {"type": "array", "items": {"type": "string"}},
                ]
            }
        else:
            properties[c.key] = {"type": "string"}
    return {
        "type": "object",
        "properties": {
            "rows": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": properties,
                    "required": [c.key for c in columns],
                },
            }
        },
        "required": ["rows"],
    }


def build_parse_prompt(columns: List[Column], text_snippet: str) -> str:
    head = (
        "Map the PDF content to table rows with these target columns: "
        f"{json.dumps(prompt_columns(columns), ensure_ascii=False)}. "
        "Use source cues like position (Pos), system/model names, quantity/skaits/qty "
        "and color/colour fields. If a value is missing, return empty string for that "
        "column. Return rows only if they are grounded in document content.\n\n"
    )
    if text_snippet:
        return head + f"Extracted PDF text:\n{text_snippet}"
    return head + "Extracted PDF text is empty. Read directly from file."


def rows_from_model_text(text: str) -> List[RawRow]:
    """Rows of a structured answer; malformed bodies count as no rows."""
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return []
    if not isinstance(parsed, dict) or not isinstance(parsed.get("rows"), list):
        return []
    return [r for r in parsed["rows"] if isinstance(r, dict)]


def is_rows_envelope(text: str) -> bool:
    """True for a `{"rows": [...]}` answer, which is never document text."""
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return False
    return isinstance(parsed, dict) and isinstance(parsed.get("rows"), list)


# ---------- remote file scope ----------


@asynccontextmanager
async def remote_file(client: AIClient, file_id: str) -> AsyncIterator[str]:
    """Delete the uploaded file however the block exits; deletion errors are dropped."""
    try:
        yield file_id
    finally:
        try:
            await client.delete_file(file_id)
        except Exception as e:
            logger.debug("cleanup of %s failed: %s", file_id, e)


# ---------- orchestrator ----------


class AIRowExtractor:
    def __init__(
        self,
        client: AIClient,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self.clock = clock

    async def run(
        self, document: Document, columns: List[Column], extracted_text: str
    ) -> Union[ParseOutcome, ParseFailure]:
        cfg = self.settings
        ctx = ParseContext.start(cfg.total_timeout_s, self.clock)
        ctx.offer_text(extracted_text)

        if extracted_text.strip():
            rows, tier = rows_from_any_text(extracted_text, columns)
            if rows:
                logger.info("local text parsed by %s tier", tier)
                return ParseOutcome(
                    rows=rows, model=LOCAL_TEXT_MODEL, raw_text=extracted_text
                )

        if not ctx.has_time_left():
            return ParseOutcome(rows=[], model="", raw_text=ctx.best_text)

        try:
            file_id = await self.client.upload_file(
                document.name,
                document.mime_type,
                document.data,
                timeout_s=ctx.call_timeout(cfg.upload_timeout_s),
            )
        except AITimeoutError as e:
            logger.warning("upload timed out: %s", e)
            return ParseFailure(error="OpenAI file upload timeout.", status_hint=504)
        except AIServiceError as e:
            logger.warning("upload failed: %s", e)
            return ParseFailure(error=str(e) or "OpenAI file upload failed.", status_hint=502)

        async with remote_file(self.client, file_id):
            return await self._cascade(ctx, file_id, columns, extracted_text)

    async def _cascade(
        self,
        ctx: ParseContext,
        file_id: str,
        columns: List[Column],
        extracted_text: str,
    ) -> ParseOutcome:
        cfg = self.settings
        prompt = build_parse_prompt(columns, extracted_text[: cfg.text_snippet_chars])
        schema = row_json_schema(columns)

        for model in cfg.candidate_models():
            if not ctx.has_time_left():
                logger.info("parse deadline reached after %s", ctx.trail() or "upload")
                break
            ctx.tried_models.append(model)

            outcome = await self._extract_rows(ctx, model, file_id, prompt, schema, columns)
            if outcome is not None:
                return outcome

            if not ctx.has_time_left():
                break
            outcome = await self._ocr_rows(ctx, model, file_id, columns)
            if outcome is not None:
                return outcome

        return ParseOutcome(rows=[], model=ctx.trail(), raw_text=ctx.best_text)

    async def _extract_rows(
        self,
        ctx: ParseContext,
        model: str,
        file_id: str,
        prompt: str,
        schema: Dict[str, Any],
        columns: List[Column],
    ) -> Optional[ParseOutcome]:
        try:
            raw = await self.client.generate_raw(
                model,
                prompt,
                system=PARSE_SYSTEM_PROMPT,
                file_id=file_id,
                json_schema=schema,
                max_output_tokens=self.settings.parse_max_output_tokens,
                timeout_s=ctx.call_timeout(self.settings.request_timeout_s),
            )
        except AIServiceError as e:
            logger.warning("%s extraction failed: %s", model, e)
            return None
        except Exception as e:
            logger.warning("%s extraction failed unexpectedly: %r", model, e)
            return None

        rows = rows_from_model_text(raw)
        if rows:
            logger.info("%s returned %d rows", model, len(rows))
            return ParseOutcome(
                rows=rows,
                model=f"{model} ({ctx.trail()})",
                raw_text=ctx.best_text,
                from_model=True,
            )
        if raw.strip() and not is_rows_envelope(raw):
            logger.warning("%s answer carried no structured rows", model)
            ctx.offer_text(raw)
            rows, _ = rows_from_any_text(raw, columns)
            if rows:
                return ParseOutcome(
                    rows=rows,
                    model=f"{model} response-text heuristic ({ctx.trail()})",
                    raw_text=raw,
                )
        return None

    async def _ocr_rows(
        self, ctx: ParseContext, model: str, file_id: str, columns: List[Column]
    ) -> Optional[ParseOutcome]:
        try:
            text = await self.client.generate_raw(
                model,
                OCR_USER_PROMPT,
                system=OCR_SYSTEM_PROMPT,
                file_id=file_id,
                max_output_tokens=self.settings.ocr_max_output_tokens,
                timeout_s=ctx.call_timeout(self.settings.request_timeout_s),
            )
        except AIServiceError as e:
            logger.warning("%s OCR failed: %s", model, e)
            return None
        except Exception as e:
            logger.warning("%s OCR failed unexpectedly: %r", model, e)
            return None
        if not text.strip():
            return None
        ctx.offer_text(text)
        rows, _ = rows_from_any_text(text, columns)
        if rows:
            return ParseOutcome(
                rows=rows, model=f"{model} heuristic ({ctx.trail()})", raw_text=text
            )
        return None
