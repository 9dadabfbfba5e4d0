"""Schemas for icon generation requests and the upstream request body."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


ImageSizePreset = Literal[
    "square_hd",
    "square",
    "portrait_4_3",
    "portrait_16_9",
    "landscape_4_3",
    "landscape_16_9",
]
OutputFormat = Literal["jpeg", "png"]


class ImageSizeObject(BaseModel):
    """Explicit pixel dimensions accepted in place of a size preset."""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)

    model_config = ConfigDict(extra="forbid", frozen=True)


ImageSize = ImageSizePreset | ImageSizeObject


class GenerationRequest(BaseModel):
    """One generation attempt, as posted to ``/api/generate-icon-stream``.

    The prompt is trimmed on construction and must not be empty afterwards.
    Instances are immutable.
    """

    prompt: str = Field(..., min_length=1)
    image_size: ImageSize | None = None
    output_format: OutputFormat | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("prompt", mode="before")
    @classmethod
    def _strip_prompt(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip()
        return v

    def to_relay_body(self) -> dict[str, Any]:
        """JSON body for the relay endpoint, omitting unset options."""
        return self.model_dump(mode="json", exclude_none=True)


class LoraWeight(BaseModel):
    path: str
    scale: float = 1.0


class UpstreamPayload(BaseModel):
    """Body sent to the upstream streaming generation endpoint."""

    prompt: str
    image_size: ImageSize
    num_images: int = 1
    output_format: OutputFormat
    num_inference_steps: int
    guidance_scale: float
    enable_safety_checker: bool
    loras: list[LoraWeight] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)
