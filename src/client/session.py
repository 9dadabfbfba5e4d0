"""Generation session state machine.

Each submission gets its own ``GenerationSession``::

    idle -> pending -> success | error

The controller keeps one session active. Submitting again supersedes the
active session: its live preview handle is released right away and its
stream is abandoned at the next event, so a slow stale stream can neither
replace the new preview nor release a handle it no longer owns.

Observers subscribe to ``SessionUpdate`` snapshots instead of being threaded
through the stream code; only the active session publishes.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

import httpx
from pydantic import ValidationError

from client.exceptions import (
    EmptyStreamError,
    GenerationError,
    InvalidPromptError,
    TransportFailure,
)
from client.handles import ObjectUrlRegistry
from client.history import GenerationHistory, HistoryEntry
from client.materializer import IMAGE_UPDATE_MESSAGE, ImageMaterializer, progress_text
from schemas.generation import GenerationRequest, ImageSize, OutputFormat
from schemas.stream_events import UpstreamStreamEvent


logger = logging.getLogger(__name__)

PREPARING_MESSAGE = "Preparing to generate..."
SUPERSEDED_MESSAGE = "Superseded by a newer generation request."


class SessionStatus(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class SessionUpdate:
    session_id: str | None
    status: SessionStatus
    live_image_handle: str | None = None
    progress_message: str | None = None
    error_message: str | None = None


IDLE_UPDATE = SessionUpdate(session_id=None, status=SessionStatus.IDLE)

Listener = Callable[[SessionUpdate], None]


class EventSource(Protocol):
    def stream_events(
        self, request: GenerationRequest
    ) -> AsyncIterator[UpstreamStreamEvent]: ...


@dataclass(eq=False)
class GenerationSession:
    prompt: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: SessionStatus = SessionStatus.IDLE
    current_handle: str | None = None
    progress_message: str | None = None
    error: str | None = None
    materialized_count: int = 0
    superseded: bool = False
    history_entry: HistoryEntry | None = None

    @property
    def owns_handle(self) -> bool:
        """Only a pending session owns its preview; success hands it to history."""
        return self.status is SessionStatus.PENDING and self.current_handle is not None

    def snapshot(self) -> SessionUpdate:
        return SessionUpdate(
            session_id=self.id,
            status=self.status,
            live_image_handle=self.current_handle,
            progress_message=self.progress_message,
            error_message=self.error,
        )


class GenerationController:
    """Run generation sessions against an event source and keep the history."""

    def __init__(
        self,
        relay: EventSource,
        *,
        registry: ObjectUrlRegistry | None = None,
        history: GenerationHistory | None = None,
    ) -> None:
        self.relay = relay
        self.registry = registry or ObjectUrlRegistry()
        self.history = history or GenerationHistory(self.registry)
        self._materializer = ImageMaterializer(self.registry)
        self._active: GenerationSession | None = None
        self._listeners: list[Listener] = []

    @property
    def active_session(self) -> GenerationSession | None:
        return self._active

    @property
    def state(self) -> SessionUpdate:
        return self._active.snapshot() if self._active else IDLE_UPDATE

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def submit(
        self,
        prompt: str,
        *,
        image_size: ImageSize | None = None,
        output_format: OutputFormat | None = None,
        history_prompt: str | None = None,
    ) -> GenerationSession:
        """Run one generation attempt to completion and return its session.

        ``prompt`` is sent upstream as given. ``history_prompt`` is the text
        recorded with the history entry (and so the export filename); it
        defaults to ``prompt``, letting callers keep the user's own wording
        when they send an enhanced prompt.

        Never raises for generation failures; they end the session in the
        error state with a user-facing message.
        """
        session = self._begin(history_prompt or prompt)
        try:
            request = self._build_request(prompt, image_size, output_format)
            await self._consume(session, request)
        except GenerationError as exc:
            self._fail(session, exc)
            return session

        if session.superseded:
            self._retire(session)
        else:
            self._succeed(session)
        return session

    async def close(self) -> None:
        """Tear down: drop the active preview and release all history handles."""
        active = self._active
        if active is not None and active.status is SessionStatus.PENDING:
            self._supersede(active)
        self.history.close()

    def _begin(self, prompt: str) -> GenerationSession:
        previous = self._active
        if previous is not None and previous.status is SessionStatus.PENDING:
            self._supersede(previous)

        session = GenerationSession(
            prompt=prompt.strip(),
            status=SessionStatus.PENDING,
            progress_message=PREPARING_MESSAGE,
        )
        self._active = session
        self._publish(session)
        return session

    def _supersede(self, session: GenerationSession) -> None:
        session.superseded = True
        if session.owns_handle:
            self.registry.release(session.current_handle)  # type: ignore[arg-type]
        session.current_handle = None
        logger.debug("Session %s superseded", session.id)

    @staticmethod
    def _build_request(
        prompt: str,
        image_size: ImageSize | None,
        output_format: OutputFormat | None,
    ) -> GenerationRequest:
        if not prompt or not prompt.strip():
            raise InvalidPromptError()
        try:
            return GenerationRequest(
                prompt=prompt, image_size=image_size, output_format=output_format
            )
        except ValidationError as exc:
            raise InvalidPromptError("Invalid generation options.") from exc

    async def _consume(
        self, session: GenerationSession, request: GenerationRequest
    ) -> None:
        try:
            async with aclosing(self.relay.stream_events(request)) as events:
                async for event in events:
                    if session.superseded:
                        logger.debug("Dropping late event for session %s", session.id)
                        return
                    self._apply(session, event)
        except httpx.HTTPError as exc:
            logger.warning(
                "Generation stream transport failure: %s - %s",
                type(exc).__name__,
                str(exc),
            )
            raise TransportFailure() from exc

        if not session.superseded and session.materialized_count == 0:
            raise EmptyStreamError()

    def _apply(self, session: GenerationSession, event: UpstreamStreamEvent) -> None:
        changed = False
        handle = self._materializer.apply(event, session.current_handle)
        if handle != session.current_handle:
            session.current_handle = handle
            session.materialized_count += 1
            session.progress_message = IMAGE_UPDATE_MESSAGE
            changed = True

        text = progress_text(event)
        if text is not None:
            session.progress_message = text
            changed = True

        if changed:
            self._publish(session)

    def _fail(self, session: GenerationSession, exc: GenerationError) -> None:
        if session.owns_handle:
            self.registry.release(session.current_handle)  # type: ignore[arg-type]
        session.current_handle = None
        session.status = SessionStatus.ERROR
        session.error = exc.message
        session.progress_message = None
        logger.info("Session %s failed: %s", session.id, exc.error_code)
        self._publish(session)

    def _retire(self, session: GenerationSession) -> None:
        session.status = SessionStatus.ERROR
        session.error = SUPERSEDED_MESSAGE
        session.progress_message = None

    def _succeed(self, session: GenerationSession) -> None:
        # Ownership of the final preview moves to the history; not released
        session.history_entry = self.history.add(
            session.current_handle,  # type: ignore[arg-type]
            session.prompt,
        )
        session.status = SessionStatus.SUCCESS
        session.progress_message = None
        self._publish(session)

    def _publish(self, session: GenerationSession) -> None:
        if session is not self._active:
            return
        update = session.snapshot()
        for listener in list(self._listeners):
            listener(update)
