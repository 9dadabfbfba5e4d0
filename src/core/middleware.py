"""Middleware for request correlation ID tracking."""

import re
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.error_handler import set_correlation_id


CORRELATION_ID_HEADER = "X-Correlation-ID"

# Caller ids end up verbatim in log lines
_ACCEPTABLE_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def resolve_correlation_id(candidate: str | None) -> str:
    """Reuse a well-formed caller id, otherwise mint a UUID."""
    if candidate and _ACCEPTABLE_ID.fullmatch(candidate):
        return candidate
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag every request, its log lines and its response with a correlation ID.

    A browser session can pass ``X-Correlation-ID`` to join its own logs with
    the relay's. Streaming responses pass through untouched apart from the
    header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = resolve_correlation_id(
            request.headers.get(CORRELATION_ID_HEADER)
        )
        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
