"""Schemas for events carried in the upstream generation stream.

Each ``data:`` line of the stream holds one JSON object. Only two shapes
matter: image updates (``images``) and progress logs (``logs``). Nothing in
an event orders it; arrival order is the only signal.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class StreamImage(BaseModel):
    url: str | None = None
    content_type: str | None = None
    width: int | None = None
    height: int | None = None

    model_config = ConfigDict(extra="allow")


class ImageEvent(BaseModel):
    images: list[StreamImage]
    seed: int | None = None
    has_nsfw_concepts: list[bool] | None = None

    model_config = ConfigDict(extra="allow")


class LogEntry(BaseModel):
    message: str | None = None

    model_config = ConfigDict(extra="allow")


class LogEvent(BaseModel):
    logs: list[LogEntry]

    model_config = ConfigDict(extra="allow")

    @property
    def last_message(self) -> str | None:
        return self.logs[-1].message if self.logs else None


UpstreamStreamEvent = ImageEvent | LogEvent


def parse_stream_event(payload: Any) -> UpstreamStreamEvent | None:
    """Map a decoded JSON payload to a stream event, or None for other shapes.

    A non-empty ``images`` list wins over ``logs`` when both are present.

    Raises:
        pydantic.ValidationError: if the recognized key holds malformed items.
    """
    if not isinstance(payload, dict):
        return None
    images = payload.get("images")
    if isinstance(images, list) and images:
        return ImageEvent.model_validate(payload)
    logs = payload.get("logs")
    if isinstance(logs, list) and logs:
        return LogEvent.model_validate(payload)
    return None
