from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the AI service, time budgets & limits.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORDERPARSE_",
        extra="ignore",
    )

    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "ORDERPARSE_OPENAI_API_KEY"),
    )
    preferred_model: str = Field(
        default="gpt-4o",
        validation_alias=AliasChoices(
            "OPENAI_ORDER_INPUT_MODEL", "ORDERPARSE_PREFERRED_MODEL"
        ),
    )
    fallback_models: List[str] = Field(
        default_factory=lambda: ["gpt-4.1", "gpt-4.1-mini", "gpt-4o-mini"]
    )

    # seconds
    request_timeout_s: float = 35.0
    upload_timeout_s: float = 45.0
    total_timeout_s: float = 90.0
    max_retries: int = Field(default=2, ge=0)
    retry_backoff_s: float = 0.4

    text_snippet_chars: int = 50_000
    preview_chars: int = 300
    max_file_size_bytes: int = 20 * 1024 * 1024

    parse_max_output_tokens: int = 4000
    ocr_max_output_tokens: int = 5000

    schema_file: Path = Field(default=Path("schema") / "parse_request.schema.json")

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _strip_key(cls, v):
        # empty env values behave like unset ones
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("preferred_model", mode="before")
    @classmethod
    def _default_model(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return "gpt-4o"
        return v.strip() if isinstance(v, str) else v

    def candidate_models(self) -> List[str]:
        """Preferred model first, then the fallbacks without it."""
        return [self.preferred_model] + [
            m for m in self.fallback_models if m != self.preferred_model
        ]


# Lazy singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
