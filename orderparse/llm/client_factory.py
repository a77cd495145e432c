from typing import Any, Optional

from orderparse.config import Settings, get_settings
from orderparse.errors import ConfigurationError
from orderparse.llm.ai_client import AIClient
from orderparse.llm.mock_client import MockAIClient
from orderparse.llm.openai_client import OpenAIFileClient


def create_ai_client(
    provider: str = "openai", settings: Optional[Settings] = None, **kwargs: Any
) -> AIClient:
    if provider == "openai":
        cfg = settings or get_settings()
        return OpenAIFileClient(
            api_key=kwargs.pop("api_key", cfg.openai_api_key),
            request_timeout_s=cfg.request_timeout_s,
            upload_timeout_s=cfg.upload_timeout_s,
            max_retries=cfg.max_retries,
            retry_backoff_s=cfg.retry_backoff_s,
            **kwargs,
        )
    elif provider == "mock":
        return MockAIClient()
    raise ConfigurationError(f"Unknown AI provider: {provider}. Use 'openai' or 'mock'.")
