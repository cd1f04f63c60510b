"""
Test configuration and fixtures for the journal realtime server test suite.

Environment variables are set before any journal_server import so module-level
config loading never sees a missing secret.
"""

# pylint: disable=redefined-outer-name

import asyncio
import json
import os
import random
from collections.abc import Generator
from datetime import timedelta
from typing import Any

import pytest

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-for-testing-only")
os.environ.setdefault("JWT_INTERNAL_TOKEN", "test-internal-token")
os.environ.setdefault("LOGGING_ENVIRONMENT", "test")
os.environ.setdefault("LOGGING_LEVEL", "DEBUG")
os.environ.setdefault("REALTIME_SPIN_DURATION_MS", "20")

# Imports must come after environment variables to prevent config loading failures
from journal_server.auth_utils import create_access_token  # noqa: E402
from journal_server.config import reset_config  # noqa: E402
from journal_server.config.models import AppConfig, RealtimeConfig, SecurityConfig  # noqa: E402
from journal_server.container import RealtimeContainer  # noqa: E402
from journal_server.realtime.connection_models import AuthenticatedIdentity  # noqa: E402

TEST_SECRET = "test-jwt-secret-key-for-testing-only"
TEST_INTERNAL_TOKEN = "test-internal-token"


class FakeTransport:
    """In-memory stand-in for a WebSocket: records frames and close calls."""

    def __init__(self, fail: bool = False, hang: bool = False) -> None:
        self.fail = fail
        self.hang = hang
        self.frames: list[str] = []
        self.closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("peer reset")
        if self.hang:
            await asyncio.sleep(3600)
        self.frames.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.frames]

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [event for event in self.events if event["type"] == event_type]

    def clear(self) -> None:
        self.frames.clear()


async def wait_for_event(transport: FakeTransport, event_type: str, timeout: float = 2.0) -> dict[str, Any]:
    """Poll a transport until an event of the given type shows up."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        matches = transport.of_type(event_type)
        if matches:
            return matches[0]
        await asyncio.sleep(0.01)
    raise AssertionError(f"No {event_type} event within {timeout}s; got {[e['type'] for e in transport.events]}")


def make_token(user_id: Any = "user-1", secret: str = TEST_SECRET, expires_in: timedelta | None = None, **claims) -> str:
    data = {"id": user_id, **claims} if user_id is not None else dict(claims)
    return create_access_token(data, secret, expires_delta=expires_in)


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset the config singleton around every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        security=SecurityConfig(secret=TEST_SECRET, internal_token=TEST_INTERNAL_TOKEN),
        realtime=RealtimeConfig(spin_duration_ms=20, send_timeout_seconds=0.2),
    )


@pytest.fixture
def container(app_config: AppConfig) -> RealtimeContainer:
    return RealtimeContainer(app_config, rng=random.Random(1234))


@pytest.fixture
def connect(container: RealtimeContainer):
    """Register a fake connection, optionally bound to a user; returns (connection_id, transport)."""

    async def _connect(user_id: str | None = None, transport: FakeTransport | None = None):
        transport = transport or FakeTransport()
        connection_id = await container.registry.register(transport)
        if user_id is not None:
            await container.registry.bind_identity(connection_id, AuthenticatedIdentity(user_id, user_id.title()))
        return connection_id, transport

    return _connect


@pytest.fixture
def fake_transport() -> type[FakeTransport]:
    return FakeTransport


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def event_waiter():
    return wait_for_event


@pytest.fixture
def connect_to():
    """Like `connect`, for a container built inside the test; optionally joins a journal."""

    async def _connect_to(target: RealtimeContainer, user_id: str, journal_id: str | None = None):
        transport = FakeTransport()
        connection_id = await target.registry.register(transport)
        await target.registry.bind_identity(connection_id, AuthenticatedIdentity(user_id))
        if journal_id is not None:
            await target.subscriptions.subscribe(connection_id, f"journal:{journal_id}")
        return connection_id, transport

    return _connect_to
