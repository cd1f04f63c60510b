"""
Data models for connection management.

This module defines the records the registry keeps per live connection and
the identity extracted from a verified token.
"""

# pylint: disable=too-many-instance-attributes  # Reason: a connection record carries its full live state

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from .connection_state_machine import ConnectionLifecycle


class ConnectionTransport(Protocol):
    """The subset of a WebSocket the realtime core writes to."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """User identity extracted from a verified bearer token."""

    user_id: str
    display_name: str | None = None


@dataclass
class ConnectionRecord:
    """
    State for one live WebSocket connection.

    user_id is set at most once; subscribed_topics mirrors the subscription
    index so a close can detach the connection from every topic it joined.
    """

    connection_id: str
    transport: ConnectionTransport
    created_at: float = field(default_factory=time.time)
    last_seen: float = field(default_factory=time.time)
    user_id: str | None = None
    display_name: str | None = None
    subscribed_topics: set[str] = field(default_factory=set)
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    lifecycle: ConnectionLifecycle = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.lifecycle = ConnectionLifecycle(self.connection_id)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def identity(self) -> AuthenticatedIdentity | None:
        if self.user_id is None:
            return None
        return AuthenticatedIdentity(self.user_id, self.display_name)

    def touch(self) -> None:
        self.last_seen = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "user_id": self.user_id,
            "state": self.lifecycle.state_id,
            "topics": sorted(self.subscribed_topics),
            "created_at": self.created_at,
            "last_seen": self.last_seen,
        }
