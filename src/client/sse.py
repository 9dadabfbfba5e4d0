"""Incremental decoder for ``data: <json>`` framed generation streams.

Text arrives in chunks cut at arbitrary points: one line may span several
chunks and one chunk may hold several lines. The decoder buffers text,
emits each complete line as soon as its newline arrives and keeps the
trailing partial line for the next chunk.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from pydantic import ValidationError

from schemas.stream_events import UpstreamStreamEvent, parse_stream_event


logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


class SseLineDecoder:
    """Line-buffered parser turning text chunks into JSON payloads.

    Malformed JSON on a ``data:`` line is logged and skipped; it never ends
    the stream. Lines without the ``data: `` prefix (comments, ``event:``
    fields, blank separators) are ignored.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._closed = False

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, chunk: str) -> list[Any]:
        """Append a chunk and return payloads for every line it completed."""
        if self._closed:
            raise RuntimeError("SseLineDecoder is closed")
        if not chunk:
            return []

        self._buffer += chunk
        payloads: list[Any] = []
        while (eol := self._buffer.find("\n")) >= 0:
            line = self._buffer[:eol].strip()
            self._buffer = self._buffer[eol + 1 :]
            if not line.startswith(DATA_PREFIX):
                continue
            try:
                payloads.append(json.loads(line[len(DATA_PREFIX) :]))
            except json.JSONDecodeError as exc:
                logger.warning("Skipping malformed stream event: %s", exc)
        return payloads

    def close(self) -> None:
        """End of transport: an unterminated trailing line is dropped.

        Upstream is expected to terminate every event with a newline; if it
        ever does not, the final event is lost here. Logged so it shows up.
        """
        if self._closed:
            return
        self._closed = True
        residual = self._buffer.strip()
        self._buffer = ""
        if residual:
            logger.warning(
                "Discarding %d characters of unterminated stream data at close",
                len(residual),
            )


async def iter_sse_payloads(chunks: AsyncIterable[str]) -> AsyncIterator[Any]:
    """Lazily decode JSON payloads from a chunked text stream, in order."""
    decoder = SseLineDecoder()
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
    decoder.close()


async def iter_stream_events(
    chunks: AsyncIterable[str],
) -> AsyncIterator[UpstreamStreamEvent]:
    """Decode image and log events; other payload shapes are dropped."""
    async for payload in iter_sse_payloads(chunks):
        try:
            event = parse_stream_event(payload)
        except ValidationError as exc:
            logger.warning(
                "Skipping stream event with unexpected structure: %d errors",
                exc.error_count(),
            )
            continue
        if event is not None:
            yield event
