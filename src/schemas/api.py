"""Response bodies shared by the relay's JSON endpoints."""

from __future__ import annotations

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for JSON (non-streaming) success responses.

    The generation endpoint streams raw upstream bytes and never uses it.
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"


class HealthStatus(BaseModel):
    status: Literal["healthy"] = "healthy"
    message: str
    upstream_configured: bool


class ErrorResponse(BaseModel):
    """Error body shared by every failing endpoint.

    Upstream rejections carry the upstream body verbatim in ``details``;
    validation failures carry the field errors there.

    Attributes:
        error: A human-readable error message.
        details: Optional structured or textual error details.
    """

    error: str
    details: Any | None = None

    def to_content(self) -> dict[str, Any]:
        """Serialize without empty optional fields."""
        return self.model_dump(exclude_none=True)
