"""Tests for the generation session state machine and handle ownership."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

import httpx
import pytest

from client.relay_client import RelayClient
from client.session import (
    IDLE_UPDATE,
    SUPERSEDED_MESSAGE,
    GenerationController,
    SessionStatus,
    SessionUpdate,
)
from schemas.generation import GenerationRequest
from schemas.stream_events import ImageEvent, LogEvent, UpstreamStreamEvent


def image(payload: str) -> ImageEvent:
    return ImageEvent.model_validate(
        {"images": [{"url": f"data:image/png;base64,{payload}"}]}
    )


def log(message: str) -> LogEvent:
    return LogEvent.model_validate({"logs": [{"message": message}]})


@dataclass
class Pause:
    """Script step that parks the stream until the test resumes it."""

    reached: asyncio.Event = field(default_factory=asyncio.Event)
    resume: asyncio.Event = field(default_factory=asyncio.Event)


Step = UpstreamStreamEvent | Pause | Exception


class ScriptedRelay:
    """Event source replaying a fixed script per prompt."""

    def __init__(self, scripts: dict[str, list[Step]]) -> None:
        self.scripts = scripts
        self.requests: list[GenerationRequest] = []

    async def stream_events(
        self, request: GenerationRequest
    ) -> AsyncIterator[UpstreamStreamEvent]:
        self.requests.append(request)
        for step in self.scripts[request.prompt]:
            if isinstance(step, Pause):
                step.reached.set()
                await step.resume.wait()
            elif isinstance(step, Exception):
                raise step
            else:
                yield step


def _record(controller: GenerationController) -> list[SessionUpdate]:
    updates: list[SessionUpdate] = []
    controller.subscribe(updates.append)
    return updates


def _assert_handles_balanced(controller: GenerationController) -> None:
    registry = controller.registry
    assert registry.created_count == registry.released_count + len(
        registry.live_handles
    )


@pytest.mark.asyncio
async def test_successful_stream_keeps_only_final_image() -> None:
    relay = ScriptedRelay(
        {
            "camera": [
                log("step 1/28"),
                image("AQID"),
                log("step 14/28"),
                image("BAUG"),
            ]
        }
    )
    controller = GenerationController(relay)
    updates = _record(controller)

    session = await controller.submit("  camera ")

    assert session.status is SessionStatus.SUCCESS
    assert session.materialized_count == 2
    assert len(controller.history) == 1
    entry = controller.history.entries[0]
    assert entry.prompt == "camera"
    assert entry.image_handle == session.current_handle
    assert controller.registry.resolve(entry.image_handle).data == b"\x04\x05\x06"
    assert controller.registry.live_handles == [entry.image_handle]
    assert controller.registry.released_count == 1
    _assert_handles_balanced(controller)

    assert updates[0].status is SessionStatus.PENDING
    assert updates[0].progress_message == "Preparing to generate..."
    assert "Progress: step 1/28" in [u.progress_message for u in updates]
    assert updates[-1].status is SessionStatus.SUCCESS
    assert controller.state == updates[-1]


@pytest.mark.asyncio
async def test_history_records_caller_prompt_over_sent_prompt() -> None:
    sent = "camera, metallic, high quality render"
    relay = ScriptedRelay({sent: [image("AQID")]})
    controller = GenerationController(relay)

    session = await controller.submit(sent, history_prompt=" camera ")

    assert relay.requests[0].prompt == sent
    assert session.status is SessionStatus.SUCCESS
    assert session.prompt == "camera"
    assert controller.history.entries[0].prompt == "camera"


@pytest.mark.asyncio
async def test_stream_without_images_ends_in_error() -> None:
    relay = ScriptedRelay({"camera": [log("step 1/28")]})
    controller = GenerationController(relay)
    updates = _record(controller)

    session = await controller.submit("camera")

    assert session.status is SessionStatus.ERROR
    assert session.error == "Image data not found or processed from stream events."
    assert [u.progress_message for u in updates][:2] == [
        "Preparing to generate...",
        "Progress: step 1/28",
    ]
    assert updates[-1].status is SessionStatus.ERROR
    assert updates[-1].live_image_handle is None
    assert len(controller.history) == 0
    assert controller.registry.created_count == 0


@pytest.mark.asyncio
async def test_all_malformed_stream_creates_no_handles() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"data: {oops\n\ndata: not-json\n\n")

    controller = GenerationController(
        RelayClient("http://relay.test", transport=httpx.MockTransport(handler))
    )

    session = await controller.submit("camera")

    assert session.status is SessionStatus.ERROR
    assert session.error == "Image data not found or processed from stream events."
    assert controller.registry.created_count == 0


@pytest.mark.asyncio
async def test_relay_error_status_surfaces_details() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            500,
            json={
                "error": "Upstream image API stream request failed.",
                "details": {"error": "rate limited"},
            },
        )

    controller = GenerationController(
        RelayClient("http://relay.test", transport=httpx.MockTransport(handler))
    )

    session = await controller.submit("camera")

    assert session.status is SessionStatus.ERROR
    assert session.error is not None
    assert "rate limited" in session.error
    assert session.current_handle is None


@pytest.mark.asyncio
async def test_transport_failure_releases_preview() -> None:
    relay = ScriptedRelay(
        {"camera": [image("AQID"), httpx.ReadError("connection reset")]}
    )
    controller = GenerationController(relay)

    session = await controller.submit("camera")

    assert session.status is SessionStatus.ERROR
    assert session.error == "Connection to the generation service failed."
    assert controller.registry.created_count == 1
    assert controller.registry.live_handles == []
    _assert_handles_balanced(controller)


@pytest.mark.asyncio
async def test_blank_prompt_never_reaches_relay() -> None:
    relay = ScriptedRelay({})
    controller = GenerationController(relay)

    session = await controller.submit("   ")

    assert session.status is SessionStatus.ERROR
    assert session.error == "Please enter a prompt."
    assert relay.requests == []


@pytest.mark.asyncio
async def test_newer_submission_supersedes_pending_one() -> None:
    pause = Pause()
    relay = ScriptedRelay(
        {
            "first": [image("AQID"), pause, image("BAUG")],
            "second": [image("BwgJ")],
        }
    )
    controller = GenerationController(relay)
    updates = _record(controller)

    first_task = asyncio.create_task(controller.submit("first"))
    await pause.reached.wait()
    first_handle = controller.state.live_image_handle
    assert first_handle is not None

    second = await controller.submit("second")
    # The first preview is released as soon as the new session starts
    assert not controller.registry.is_live(first_handle)

    updates_before_resume = len(updates)
    pause.resume.set()
    first = await first_task

    assert first.status is SessionStatus.ERROR
    assert first.error == SUPERSEDED_MESSAGE
    assert first.current_handle is None
    assert second.status is SessionStatus.SUCCESS
    assert controller.active_session is second
    # The stale stream's late image is never materialized or published
    assert len(updates) == updates_before_resume
    assert controller.state.live_image_handle == second.current_handle
    assert controller.registry.created_count == 2
    assert controller.registry.released_count == 1
    assert [e.prompt for e in controller.history.entries] == ["second"]
    _assert_handles_balanced(controller)


@pytest.mark.asyncio
async def test_unsubscribed_listener_receives_nothing() -> None:
    relay = ScriptedRelay({"camera": [image("AQID")]})
    controller = GenerationController(relay)
    updates: list[SessionUpdate] = []
    unsubscribe = controller.subscribe(updates.append)
    unsubscribe()

    assert controller.state == IDLE_UPDATE
    await controller.submit("camera")

    assert updates == []


@pytest.mark.asyncio
async def test_close_releases_every_handle() -> None:
    pause = Pause()
    relay = ScriptedRelay(
        {"done": [image("AQID")], "pending": [image("BAUG"), pause]}
    )
    controller = GenerationController(relay)
    await controller.submit("done")

    pending_task = asyncio.create_task(controller.submit("pending"))
    await pause.reached.wait()

    await controller.close()
    pause.resume.set()
    pending = await pending_task

    assert pending.status is SessionStatus.ERROR
    assert controller.registry.live_handles == []
    assert controller.registry.released_count == 2
    _assert_handles_balanced(controller)
