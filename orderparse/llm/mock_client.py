from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from orderparse.llm.ai_client import AIClient


@dataclass
class MockAIClient(AIClient):
    """Offline stand-in: accepts uploads, never finds anything."""

    deleted: List[str] = field(default_factory=list)

    async def upload_file(
        self,
        name: str,
        mime_type: str,
        data: bytes,
        *,
        timeout_s: Optional[float] = None,
    ) -> str:
        return "file-mock"

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
        return ""

    async def delete_file(self, file_id: str) -> None:
        self.deleted.append(file_id)
