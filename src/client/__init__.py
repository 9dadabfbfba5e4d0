"""Client-side streaming pipeline for relayed icon generation.

Reading order: ``sse`` decodes the relay stream into events, ``materializer``
turns image events into handles from ``handles``, and ``session`` drives one
generation at a time, recording successes in ``history``.
"""

from .exceptions import (
    EmptyStreamError,
    GenerationError,
    InvalidPromptError,
    RelayResponseError,
    TransportFailure,
)
from .handles import HandleReleasedError, ImageBlob, ObjectUrlRegistry
from .history import GenerationHistory, HistoryEntry
from .materializer import ImageMaterializer
from .relay_client import RelayClient
from .session import (
    GenerationController,
    GenerationSession,
    SessionStatus,
    SessionUpdate,
)
from .sse import SseLineDecoder, iter_sse_payloads, iter_stream_events


__all__ = [
    "EmptyStreamError",
    "GenerationController",
    "GenerationError",
    "GenerationHistory",
    "GenerationSession",
    "HandleReleasedError",
    "HistoryEntry",
    "ImageBlob",
    "ImageMaterializer",
    "InvalidPromptError",
    "ObjectUrlRegistry",
    "RelayClient",
    "RelayResponseError",
    "SessionStatus",
    "SessionUpdate",
    "SseLineDecoder",
    "TransportFailure",
    "iter_sse_payloads",
    "iter_stream_events",
]
