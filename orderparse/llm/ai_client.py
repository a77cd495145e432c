from typing import Any, Dict, Optional


class AIClient:
    """
    Interface to a file-aware AI completion service:
      upload_file(...) -> file id, generate_raw(...) -> str, delete_file(file id)
    Failures surface as orderparse.errors.AIServiceError / AITimeoutError.
    """

    async def upload_file(
        self,
        name: str,
        mime_type: str,
        data: bytes,
        *,
        timeout_s: Optional[float] = None,
    ) -> str:
        raise NotImplementedError

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
        raise NotImplementedError

    async def delete_file(self, file_id: str) -> None:
        raise NotImplementedError
