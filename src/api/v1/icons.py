"""Icon generation streaming endpoint."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from core.config import Settings, get_settings
from core.exceptions import InvalidInputError
from schemas.api import ErrorResponse
from services.relay import StreamRelayService, parse_generation_request


logger = logging.getLogger(__name__)

router = APIRouter(tags=["icons"])


def get_relay_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreamRelayService:
    return StreamRelayService(settings)


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.debug("Rejecting non-JSON generation request body: %s", exc)
        raise InvalidInputError("Invalid JSON in request body for stream.") from exc


@router.post(
    "/generate-icon-stream",
    response_class=StreamingResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing prompt or bad JSON"},
        500: {"model": ErrorResponse, "description": "Relay or upstream failure"},
    },
)
async def generate_icon_stream(
    request: Request,
    relay: Annotated[StreamRelayService, Depends(get_relay_service)],
) -> StreamingResponse:
    """Relay a streamed icon generation from the upstream API.

    The body is read by hand rather than bound to a model so malformed JSON
    and a missing prompt answer 400 with the relay's own error messages.
    On success the upstream body is streamed back byte for byte with the
    upstream ``Content-Type``.
    """
    body = await _read_json_body(request)
    generation_request = parse_generation_request(body)
    stream = await relay.open_stream(generation_request)

    # Passing Content-Type as a header keeps it verbatim (no charset suffix)
    return StreamingResponse(
        stream.iter_bytes(),
        headers={"Content-Type": stream.content_type},
        background=BackgroundTask(stream.aclose),
    )
