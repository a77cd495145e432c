"""Error types for the attachment parsing pipeline.

Only configuration problems and malformed requests escape as exceptions.
Upstream AI failures are raised by the client layer and translated into a
``ParseFailure`` (or absorbed) by the orchestrator.
"""

from __future__ import annotations

from typing import Optional


class OrderParseError(Exception):
    """Base class for all pipeline errors."""

    status_hint: int = 500


class ConfigurationError(OrderParseError):
    """Missing credentials or an unusable client setup. Never retried."""

    status_hint = 500


class AttachmentError(OrderParseError, ValueError):
    """The request or attachment cannot be parsed at all."""

    def __init__(self, message: str, status_hint: int = 400):
        super().__init__(message)
        self.status_hint = status_hint


class AIServiceError(OrderParseError):
    """Non-2xx answer (or transport failure) from the AI service after retries."""

    status_hint = 502

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        request_id: Optional[str] = None,
    ):
        self.status = status
        self.request_id = request_id
        if request_id:
            message = f"{message} request_id={request_id}"
        super().__init__(message)


class AITimeoutError(AIServiceError):
    """A single AI call exceeded its own timeout."""

    status_hint = 504
