from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from orderparse.errors import AttachmentError

logger = logging.getLogger(__name__)

FieldType = Literal["text", "number", "select"]
CellValue = Union[str, List[str]]

# reserved key under which tiers attach per-column provenance to a raw row
SOURCE_KEYS_FIELD = "__sourceKeys"

RawRow = Dict[str, Any]

MIN_SELECT = 1
MAX_SELECT = 3


# -----------------------------
# Column schema (tagged union on field_type)
# -----------------------------
class _ColumnBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    key: str = Field(..., min_length=1)
    label: str
    ai_key: str = Field(default="", alias="aiKey")

    @field_validator("ai_key", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @property
    def is_multi(self) -> bool:
        return False


class TextColumn(_ColumnBase):
    field_type: Literal["text"] = Field(default="text", alias="fieldType")


class NumberColumn(_ColumnBase):
    field_type: Literal["number"] = Field(default="number", alias="fieldType")


class SelectColumn(_ColumnBase):
    field_type: Literal["select"] = Field(default="select", alias="fieldType")
    options: List[str] = Field(default_factory=list)
    max_select: int = Field(default=1, alias="maxSelect")

    @field_validator("options", mode="before")
    @classmethod
    def _clean_options(cls, v):
        if v is None:
            return []
        return [str(o).strip() for o in v if o is not None and str(o).strip()]

    @field_validator("max_select", mode="before")
    @classmethod
    def _clamp_max_select(cls, v):
        try:
            n = int(v) if v is not None else MIN_SELECT
        except (TypeError, ValueError):
            n = MIN_SELECT
        return max(MIN_SELECT, min(MAX_SELECT, n))

    @property
    def is_multi(self) -> bool:
        return self.max_select > 1


Column = Annotated[
    Union[TextColumn, NumberColumn, SelectColumn], Field(discriminator="field_type")
]

_COLUMN_ADAPTER: TypeAdapter[Column] = TypeAdapter(Column)


def load_columns(raw: Iterable[Any]) -> List[Column]:
    """
    Validate caller-supplied column definitions once, at the boundary.
    Entries without a string key/label or with an unknown fieldType are skipped.
    """
    out: List[Column] = []
    seen: set[str] = set()
    for item in raw or []:
        if isinstance(item, _ColumnBase):
            col = item
        else:
            if not isinstance(item, dict):
                continue
            if not isinstance(item.get("key"), str) or not isinstance(
                item.get("label"), str
            ):
                continue
            data = dict(item)
            ft = data.get("fieldType", data.get("field_type"))
            data["fieldType"] = ft.strip().lower() if isinstance(ft, str) else ft
            data.pop("field_type", None)
            try:
                col = _COLUMN_ADAPTER.validate_python(data)
            except ValidationError as e:
                logger.warning("skipping invalid column %r: %s", item.get("key"), e)
                continue
        if col.key in seen:
            raise AttachmentError(f"Duplicate column key: {col.key}")
        seen.add(col.key)
        out.append(col)
    if not out:
        raise AttachmentError("At least one valid table column is required.")
    return out


# -----------------------------
# Results
# -----------------------------
class ParsedRow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    values: Dict[str, CellValue]
    # column key -> raw key / textual cue that supplied the value ("" if none)
    source_keys: Dict[str, str] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.values)
        out[SOURCE_KEYS_FIELD] = dict(self.source_keys)
        return out


class ColumnMapping(BaseModel):
    """Majority-vote provenance for one column. Diagnostic only."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    column_key: str = Field(..., serialization_alias="columnKey")
    column_label: str = Field(..., serialization_alias="columnLabel")
    source_key: str = Field("", serialization_alias="sourceKey")
    matched_rows: int = Field(0, ge=0, serialization_alias="matchedRows")


class ParseOutcome(BaseModel):
    """What a tier (or the AI orchestrator) produced, before normalization."""

    rows: List[RawRow] = Field(default_factory=list)
    model: str = ""
    raw_text: str = ""
    # True only when rows came straight from a model's structured answer
    from_model: bool = False


class ParseFailure(BaseModel):
    """Terminal configuration/upstream failure of the AI tier."""

    error: str
    status_hint: int = Field(502, serialization_alias="statusHint")


class ParseResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rows: List[ParsedRow] = Field(default_factory=list)
    mapping: List[ColumnMapping] = Field(default_factory=list)
    detected_rows: int = Field(0, serialization_alias="detectedRows")
    parser_model: str = Field("", serialization_alias="parserModel")
    parser_raw_text_preview: str = Field("", serialization_alias="parserRawTextPreview")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "rows": [r.to_payload() for r in self.rows],
            "mapping": [m.model_dump(by_alias=True) for m in self.mapping],
            "detectedRows": self.detected_rows,
            "parserModel": self.parser_model,
            "parserRawTextPreview": self.parser_raw_text_preview,
        }


class ParseRequest(BaseModel):
    """Conceptual request contract; identity & authorization are resolved upstream."""

    model_config = ConfigDict(populate_by_name=True)

    attachment_id: str = Field(..., min_length=1, alias="attachmentId")
    order_id: str = Field(..., min_length=1, alias="orderId")
    columns: List[Dict[str, Any]] = Field(..., min_length=1)

    @field_validator("attachment_id", "order_id", mode="before")
    @classmethod
    def _strip_ids(cls, v):
        return v.strip() if isinstance(v, str) else v

    def column_schema(self) -> List[Column]:
        return load_columns(self.columns)


def export_json_schema() -> Dict[str, Any]:
    return ParseRequest.model_json_schema(by_alias=True)


def is_empty_value(value: Optional[Any]) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return str(value).strip() == ""
