"""Error taxonomy for the client-side generation pipeline.

A session ends in the error state with one of these; ``message`` is what the
UI shows and ``error_code`` is a stable tag for analytics. Malformed stream
lines are not errors here: the decoder logs and skips them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class GenerationError(Exception):
    """Base class for generation session errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class InvalidPromptError(GenerationError):
    def __init__(self, message: str = "Please enter a prompt.") -> None:
        super().__init__(message=message, error_code="invalid_prompt")


class RelayResponseError(GenerationError):
    """The relay answered with an error status before streaming."""

    def __init__(self, status_code: int, details: str) -> None:
        super().__init__(
            message=f"API Error ({status_code}): {details}",
            error_code="relay_error",
        )
        self.status_code = status_code
        self.details = details


class TransportFailure(GenerationError):
    def __init__(
        self, message: str = "Connection to the generation service failed."
    ) -> None:
        super().__init__(message=message, error_code="transport_failure")


class EmptyStreamError(GenerationError):
    def __init__(
        self, message: str = "Image data not found or processed from stream events."
    ) -> None:
        super().__init__(message=message, error_code="empty_stream")


def describe_error_body(body: Any, fallback: str) -> str:
    """Pick the most useful human-readable text out of a relay error body.

    Preference order: ``details.message``, ``details`` (when it is text, or
    the upstream's own ``error``/``detail`` inside it), then ``error``.
    """
    if not isinstance(body, dict):
        return body if isinstance(body, str) and body else fallback

    details = body.get("details")
    if isinstance(details, dict):
        for key in ("message", "error", "detail"):
            value = details.get(key)
            if isinstance(value, str) and value:
                return value
    elif isinstance(details, str) and details:
        return details

    error = body.get("error")
    if isinstance(error, str) and error:
        return error
    return fallback
