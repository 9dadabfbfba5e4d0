"""Stream relay to the upstream image generation API.

The relay adds the fixed icon style to the caller's prompt, issues a single
streaming POST upstream and hands the decoded upstream byte stream back to the
API layer. It never buffers, reframes or retries; the browser-side decoder
does its own line-oriented parsing of whatever upstream sends.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from core.config import Settings
from core.exceptions import (
    ConfigurationError,
    InvalidInputError,
    StreamUnavailableError,
    UpstreamError,
    UpstreamTransportError,
)
from core.security_config import redact_headers
from schemas.generation import GenerationRequest, LoraWeight, UpstreamPayload


logger = logging.getLogger(__name__)

# Deployment constants for the isometric skeuomorphic icon style. These are
# not user configurable; changing any of them changes the rendered style.
STYLE_PROMPT_PREFIX = "RBNBICN, icon, white background, isometric perspective, "
STYLE_LORA_PATH = (
    "https://huggingface.co/multimodalart/isometric-skeumorphic-3d-bnb/"
    "blob/main/isometric-skeumorphic-3d-bnb.safetensors"
)
STYLE_LORA_SCALE = 1.0
NUM_INFERENCE_STEPS = 28
GUIDANCE_SCALE = 2.5
ENABLE_SAFETY_CHECKER = False
# Streaming only supports a single image per request
NUM_IMAGES = 1
DEFAULT_IMAGE_SIZE = "square"
DEFAULT_OUTPUT_FORMAT = "jpeg"

UPSTREAM_ERROR_FALLBACK = "Failed to generate image stream from the upstream API."


def parse_generation_request(body: Any) -> GenerationRequest:
    """Validate a decoded JSON request body.

    Raises:
        InvalidInputError: prompt missing or blank, or other fields invalid.
    """
    if not isinstance(body, dict):
        raise InvalidInputError("Invalid generation request.")

    prompt = body.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidInputError("Missing prompt")

    try:
        return GenerationRequest.model_validate(body)
    except ValidationError as exc:
        raise InvalidInputError(
            "Invalid generation request.",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc


def build_upstream_payload(request: GenerationRequest) -> UpstreamPayload:
    """Apply the fixed style and inference parameters to a request."""
    return UpstreamPayload(
        prompt=f"{STYLE_PROMPT_PREFIX}{request.prompt.strip()}",
        image_size=request.image_size or DEFAULT_IMAGE_SIZE,
        num_images=NUM_IMAGES,
        output_format=request.output_format or DEFAULT_OUTPUT_FORMAT,
        num_inference_steps=NUM_INFERENCE_STEPS,
        guidance_scale=GUIDANCE_SCALE,
        enable_safety_checker=ENABLE_SAFETY_CHECKER,
        loras=[LoraWeight(path=STYLE_LORA_PATH, scale=STYLE_LORA_SCALE)],
    )


@dataclass
class RelayStream:
    """An open upstream response whose body is relayed chunk by chunk.

    The body iterator releases the upstream response and client once it
    finishes, fails or is abandoned. The API layer also calls ``aclose``
    from a response background task; closing twice is a no-op.
    """

    response: httpx.Response
    client: httpx.AsyncClient
    content_type: str
    _closed: bool = field(default=False, init=False, repr=False)

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield upstream body bytes with any content encoding removed.

        The relayed response carries no ``Content-Encoding`` header, so the
        body is forwarded decoded.
        """
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            logger.error(
                "Upstream stream interrupted: %s - %s", type(exc).__name__, str(exc)
            )
            raise
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


class StreamRelayService:
    """Open streaming generation requests against the upstream API.

    Stateless: each call builds its own httpx client, so concurrent requests
    share nothing. ``transport`` exists so tests can substitute
    ``httpx.MockTransport`` for the network.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _headers(self, output_format: str) -> dict[str, str]:
        return {
            "Authorization": f"Key {self._settings.FAL_KEY}",
            "Content-Type": "application/json",
            "Accept": f"image/{output_format}",
        }

    async def open_stream(self, request: GenerationRequest) -> RelayStream:
        """Send the generation request upstream and return the open stream.

        Raises:
            ConfigurationError: no upstream credential configured.
            UpstreamTransportError: upstream unreachable or the error body
                could not be read.
            UpstreamError: upstream answered with a non-success status.
            StreamUnavailableError: upstream answered success with no body.
        """
        if not self._settings.upstream_configured:
            logger.error("FAL_KEY not configured; refusing generation request")
            raise ConfigurationError()

        payload = build_upstream_payload(request)
        client = httpx.AsyncClient(
            timeout=self._settings.upstream_timeout, transport=self._transport
        )
        upstream_request = client.build_request(
            "POST",
            self._settings.UPSTREAM_STREAM_URL,
            headers=self._headers(payload.output_format),
            json=payload.model_dump(mode="json"),
        )
        logger.info(
            "Opening upstream stream (prompt_length=%d, image_size=%s, format=%s)",
            len(request.prompt),
            payload.image_size,
            payload.output_format,
        )
        logger.debug("Upstream headers: %s", redact_headers(upstream_request.headers))

        try:
            response = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.error(
                "Upstream request failed: %s - %s", type(exc).__name__, str(exc)
            )
            raise UpstreamTransportError() from exc

        try:
            if not response.is_success:
                details = await self._read_error_details(response)
                logger.error(
                    "Upstream stream error (status=%d): %s",
                    response.status_code,
                    details,
                )
                raise UpstreamError(response.status_code, details)
            if not self._has_body(response):
                logger.error(
                    "Upstream stream body was empty despite status %d",
                    response.status_code,
                )
                raise StreamUnavailableError()
        except httpx.HTTPError as exc:
            await self._close(response, client)
            logger.error(
                "Reading upstream error body failed: %s - %s",
                type(exc).__name__,
                str(exc),
            )
            raise UpstreamTransportError() from exc
        except Exception:
            await self._close(response, client)
            raise

        content_type = (
            response.headers.get("Content-Type") or f"image/{payload.output_format}"
        )
        return RelayStream(response=response, client=client, content_type=content_type)

    @staticmethod
    def _has_body(response: httpx.Response) -> bool:
        if response.status_code == 204:
            return False
        return response.headers.get("Content-Length") != "0"

    @staticmethod
    async def _read_error_details(response: httpx.Response) -> Any:
        """Upstream error body as JSON when possible, else as text."""
        await response.aread()
        try:
            return response.json()
        except ValueError:
            return response.text or UPSTREAM_ERROR_FALLBACK

    @staticmethod
    async def _close(response: httpx.Response, client: httpx.AsyncClient) -> None:
        try:
            await response.aclose()
        finally:
            await client.aclose()
