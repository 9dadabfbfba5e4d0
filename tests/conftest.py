"""Shared test fixtures for pytest.

We set minimal env defaults early so importing `main` (which builds settings
at import time) succeeds without an external .env file, and so no test can
reach the real upstream API: every relay call goes through
`httpx.MockTransport`.
"""

import os
from collections.abc import AsyncGenerator, Callable, Generator

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient


os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("FAL_KEY", "test-fal-key")  # pragma: allowlist secret

from api.v1.icons import get_relay_service
from core.config import Settings
from main import app
from services.relay import StreamRelayService


UpstreamHandler = Callable[[httpx.Request], httpx.Response]


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "test",
        "FAL_KEY": "test-fal-key",  # pragma: allowlist secret
        "UPSTREAM_STREAM_URL": "https://upstream.test/fal-ai/flux-lora/stream",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


class UpstreamRecorder:
    """Route upstream calls to a handler and remember what was sent."""

    def __init__(self, handler: UpstreamHandler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture
def upstream() -> Generator[Callable[..., UpstreamRecorder], None, None]:
    """Install a fake upstream for the relay endpoint.

    Usage: ``recorder = upstream(handler, FAL_KEY=None)``; keyword arguments
    override relay settings.
    """

    def install(handler: UpstreamHandler, **settings_overrides) -> UpstreamRecorder:
        recorder = UpstreamRecorder(handler)
        settings = make_settings(**settings_overrides)
        app.dependency_overrides[get_relay_service] = lambda: StreamRelayService(
            settings, transport=recorder.transport()
        )
        return recorder

    yield install
    app.dependency_overrides.pop(get_relay_service, None)


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
