from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import openai

from orderparse.errors import AIServiceError, AITimeoutError, ConfigurationError
from orderparse.llm.ai_client import AIClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUSES = frozenset({408, 409, 429})


def should_retry_status(status: Optional[int]) -> bool:
    if status is None:
        return False
    return status in RETRYABLE_STATUSES or status >= 500


def openai_strict_json_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Transform a JSON Schema to satisfy OpenAI structured outputs constraints:
    - For every object schema: additionalProperties=false
    - required must exist and include every property key
    """
    schema = json.loads(json.dumps(schema))  # deep copy

    def _walk(node: Any) -> Any:
        if isinstance(node, dict):
            # Recurse first
            for k, v in list(node.items()):
                node[k] = _walk(v)

            # Enforce on objects
            if node.get("type") == "object" and isinstance(
                node.get("properties"), dict
            ):
                props = node["properties"]
                node["additionalProperties"] = False
                node["required"] = list(props.keys())

            return node

        if isinstance(node, list):
            return [_walk(x) for x in node]

        return node

    return _walk(schema)


def _response_to_text(resp: Any) -> str:
    # 1) Fast path (SDK provides this on many versions)
    text = getattr(resp, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()

    # 2) Fallback: walk resp.output items
    out = getattr(resp, "output", None)
    if isinstance(out, list):
        chunks: list[str] = []
        for item in out:
            content = getattr(item, "content", None)
            if not isinstance(content, list):
                continue
            for c in content:
                ctype = getattr(c, "type", None)
                if ctype in ("output_text", "text"):
                    t = getattr(c, "text", None)
                    if isinstance(t, str) and t.strip():
                        chunks.append(t)
        if chunks:
            return "\n".join(chunks).strip()

    return ""


def _error_message(exc: openai.APIStatusError) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        err = body.get("error", body)
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return str(getattr(exc, "message", "") or exc)


def _input_items(
    system: str, prompt: str, file_id: Optional[str]
) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    if system:
        items.append(
            {"role": "system", "content": [{"type": "input_text", "text": system}]}
        )
    user: List[Dict[str, Any]] = [{"type": "input_text", "text": prompt}]
    if file_id:
        user.append({"type": "input_file", "file_id": file_id})
    items.append({"role": "user", "content": user})
    return items


@dataclass
class OpenAIFileClient(AIClient):
    """
    Async client for the OpenAI Files + Responses APIs.

      - upload_file(...)  -> file id
      - generate_raw(...) -> str (raw model output)
      - delete_file(...)  (best effort)

    Each call has its own timeout; retryable statuses (408/409/429/5xx) and
    connection errors are retried with linear backoff. A call that ran out of
    time is never retried.
    """

    api_key: Optional[str] = None
    request_timeout_s: float = 35.0
    upload_timeout_s: float = 45.0
    max_retries: int = 2
    retry_backoff_s: float = 0.4
    temperature: Optional[float] = None
    strict_schema: bool = True
    sdk: Any = field(default=None, repr=False)

    def __post_init__(self):
        if self.sdk is None:
            if not self.api_key:
                raise ConfigurationError("OPENAI_API_KEY is not configured.")
            # retries are handled here, not by the SDK
            self.sdk = openai.AsyncOpenAI(api_key=self.api_key, max_retries=0)

    async def _call(
        self,
        what: str,
        make_call: Callable[[], Awaitable[T]],
        timeout_s: float,
    ) -> T:
        for attempt in range(self.max_retries + 1):
            try:
                return await asyncio.wait_for(make_call(), timeout=timeout_s)
            except (asyncio.TimeoutError, openai.APITimeoutError) as e:
                raise AITimeoutError(f"{what} timeout.") from e
            except openai.APIStatusError as e:
                if not should_retry_status(e.status_code) or attempt >= self.max_retries:
                    raise AIServiceError(
                        f"{what} failed with status {e.status_code}: {_error_message(e)}",
                        status=e.status_code,
                        request_id=getattr(e, "request_id", None),
                    ) from e
                logger.debug("%s: status %s, retry %d", what, e.status_code, attempt + 1)
            except openai.APIConnectionError as e:
                if attempt >= self.max_retries:
                    raise AIServiceError(f"{what} failed: {e}") from e
                logger.debug("%s: connection error, retry %d", what, attempt + 1)
            except openai.APIError as e:
                # malformed bodies and other SDK failures are not retried
                raise AIServiceError(f"{what} failed: {e}") from e
            await asyncio.sleep(self.retry_backoff_s * (attempt + 1))
        # Should not reach here
        raise AIServiceError(f"{what} failed.")

    async def upload_file(
        self,
        name: str,
        mime_type: str,
        data: bytes,
        *,
        timeout_s: Optional[float] = None,
    ) -> str:
        async def _create():
            return await self.sdk.files.create(
                file=(name or "document.pdf", data, mime_type or "application/pdf"),
                purpose="user_data",
            )

        resp = await self._call(
            "OpenAI file upload", _create, timeout_s or self.upload_timeout_s
        )
        file_id = getattr(resp, "id", None)
        if not file_id:
            raise AIServiceError("OpenAI file upload returned no file id.")
        return file_id

    async def generate_raw(
        self,
        model: str,
        prompt: str,
        *,
        system: str = "",
        file_id: Optional[str] = None,
        json_schema: Optional[Dict[str, Any]] = None,
        max_output_tokens: Optional[int] = None,
        timeout_s: Optional[float] = None,
    ) -> str:
        """
        Generate a raw text response. With json_schema, Structured Outputs are
        requested via Responses `text.format`; the JSON arrives as text.
        """
        payload: Dict[str, Any] = {
            "model": model,
            "input": _input_items(system, prompt, file_id),
        }
        if max_output_tokens:
            payload["max_output_tokens"] = max_output_tokens
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if json_schema is not None:
            schema = (
                openai_strict_json_schema(json_schema)
                if self.strict_schema
                else json_schema
            )
            payload["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": "order_input_rows",
                    "strict": bool(self.strict_schema),
                    "schema": schema,
                }
            }

        async def _create():
            return await self.sdk.responses.create(**payload)

        resp = await self._call(
            "OpenAI request", _create, timeout_s or self.request_timeout_s
        )
        return _response_to_text(resp)

    async def delete_file(self, file_id: str, *, timeout_s: Optional[float] = None) -> None:
        try:
            await asyncio.wait_for(
                self.sdk.files.delete(file_id),
                timeout=timeout_s or self.request_timeout_s,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            raise AITimeoutError("OpenAI file delete timeout.") from e
        except openai.APIError as e:
            raise AIServiceError(f"OpenAI file delete failed: {e}") from e
