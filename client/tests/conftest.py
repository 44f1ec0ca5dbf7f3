"""Shared test fixtures for the session client."""

import json
from collections.abc import AsyncGenerator
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio

from session_client.api.client import BackendClient
from session_client.config import Settings
from session_client.session.lifecycle import SessionLifecycleManager
from session_client.storage.client_store import ClientSessionStore
from session_client.storage.kv_store import InMemoryKeyValueStore


class FakeBackend:
    """Scriptable backend served through ``httpx.MockTransport``.

    ``health`` is one of ``"online"`` (200), ``"offline"`` (503) or
    ``"down"`` (connection refused).
    """

    def __init__(self) -> None:
        self.health = "online"
        self.health_calls = 0
        self.history: list[dict[str, Any]] = []
        self.chat_error: Optional[tuple[int, str]] = None
        self.chat_payloads: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/health":
            self.health_calls += 1
            if self.health == "down":
                raise httpx.ConnectError("Connection refused", request=request)
            if self.health == "offline":
                return httpx.Response(503, json={"detail": "Service unavailable"})
            return httpx.Response(200, json={"status": "healthy"})

        if path.startswith("/api/chat/sessions/") and path.endswith("/history"):
            session_id = path.split("/")[4]
            return httpx.Response(200, json={"session_id": session_id, "messages": self.history})

        if path == "/api/chat/message":
            payload = json.loads(request.content)
            self.chat_payloads.append(payload)
            if self.chat_error is not None:
                status, detail = self.chat_error
                return httpx.Response(status, json={"detail": detail})
            return httpx.Response(
                200,
                json={"response": f"About: {payload['message']}", "sources": ["notes.pdf"]},
            )

        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_base_url="http://backend.test",
        storage_backend="memory",
        poll_interval_seconds=30.0,
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def backend_client(
    settings: Settings, fake_backend: FakeBackend
) -> AsyncGenerator[BackendClient, None]:
    """BackendClient wired to the fake backend."""
    transport = httpx.MockTransport(fake_backend.handler)
    async with httpx.AsyncClient(transport=transport) as http_client:
        yield BackendClient(settings, http_client=http_client)


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv: InMemoryKeyValueStore) -> ClientSessionStore:
    return ClientSessionStore(kv)


@pytest_asyncio.fixture
async def manager(
    store: ClientSessionStore, backend_client: BackendClient, settings: Settings
) -> AsyncGenerator[SessionLifecycleManager, None]:
    """Lifecycle manager whose polling is always torn down after the test."""
    lifecycle = SessionLifecycleManager(store, backend_client, settings)
    yield lifecycle
    lifecycle.shutdown()
