"""Turn image events from the generation stream into displayable handles."""

from __future__ import annotations

import base64
import binascii
import logging

from client.handles import ImageBlob, ObjectUrlRegistry
from schemas.stream_events import ImageEvent, LogEvent, UpstreamStreamEvent


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"
IMAGE_DATA_URI_PREFIX = "data:image/"
IMAGE_UPDATE_MESSAGE = "Image update received..."


def split_data_uri(url: str) -> tuple[str, str] | None:
    """Split ``data:<type>;base64,<payload>`` into content type and payload.

    Returns None unless the url is an image data URI with a payload part.
    Metadata without ``;base64`` falls back to ``image/jpeg``.
    """
    if not url.startswith(IMAGE_DATA_URI_PREFIX):
        return None
    parts = url.split(",")
    if len(parts) < 2:
        return None
    meta, payload = parts[0], parts[1]

    content_type = DEFAULT_CONTENT_TYPE
    if meta.startswith("data:") and ";base64" in meta:
        content_type = meta[len("data:") : meta.index(";base64")]
    return content_type, payload


def decode_base64_payload(payload: str) -> bytes:
    """Decode a base64 payload; pure, so equal input gives equal bytes.

    Missing trailing ``=`` padding is tolerated.

    Raises:
        binascii.Error: payload is not valid base64.
    """
    padded = payload + "=" * (-len(payload) % 4)
    return base64.b64decode(padded, validate=True)


def progress_text(event: UpstreamStreamEvent) -> str | None:
    """Progress line for a log event; None for anything else."""
    if isinstance(event, LogEvent):
        message = event.last_message
        if message:
            return f"Progress: {message}"
    return None


class ImageMaterializer:
    """Create a handle per image update, retiring the previous one.

    Release-before-replace keeps exactly one live preview handle no matter
    how many intermediate images a stream carries.
    """

    def __init__(self, registry: ObjectUrlRegistry) -> None:
        self.registry = registry

    def apply(
        self, event: UpstreamStreamEvent, previous_handle: str | None
    ) -> str | None:
        """Return the current handle after applying ``event``.

        A new handle is returned only for a decodable image data URI, and
        ``previous_handle`` is released in that case. Otherwise the previous
        handle comes back unchanged.
        """
        if not isinstance(event, ImageEvent) or not event.images:
            return previous_handle

        url = event.images[0].url
        parsed = split_data_uri(url) if url else None
        if parsed is None:
            logger.debug("Image event without a data URI; keeping current preview")
            return previous_handle

        content_type, payload = parsed
        try:
            data = decode_base64_payload(payload)
        except binascii.Error as exc:
            logger.warning("Skipping image event with invalid base64 data: %s", exc)
            return previous_handle

        handle = self.registry.create(ImageBlob(content_type=content_type, data=data))
        if previous_handle is not None:
            self.registry.release(previous_handle)
        return handle
