"""HTTP client for the icon generation relay."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx

from client.exceptions import RelayResponseError, describe_error_body
from client.sse import iter_stream_events
from schemas.generation import GenerationRequest
from schemas.stream_events import UpstreamStreamEvent


logger = logging.getLogger(__name__)

RELAY_STREAM_PATH = "/api/generate-icon-stream"
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=120.0)


class RelayClient:
    """Stream decoded generation events from a relay.

    Transport problems surface as ``httpx.HTTPError``; the session
    controller decides how to present them.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def stream_events(
        self, request: GenerationRequest
    ) -> AsyncIterator[UpstreamStreamEvent]:
        """POST the request and yield stream events as they arrive.

        Raises:
            RelayResponseError: the relay answered with a non-success status.
            httpx.HTTPError: connection or mid-stream transport failure.
        """
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            async with client.stream(
                "POST", RELAY_STREAM_PATH, json=request.to_relay_body()
            ) as response:
                if not response.is_success:
                    raise await self._error_from_response(response)

                async for event in iter_stream_events(response.aiter_text()):
                    yield event

    @staticmethod
    async def _error_from_response(response: httpx.Response) -> RelayResponseError:
        await response.aread()
        fallback = response.reason_phrase or "Request failed"
        try:
            body = response.json()
        except ValueError:
            body = response.text
        details = describe_error_body(body, fallback)
        logger.warning(
            "Relay rejected generation request (status=%d): %s",
            response.status_code,
            details,
        )
        return RelayResponseError(response.status_code, details)
