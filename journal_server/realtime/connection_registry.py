"""
Registry of live WebSocket connections.

The registry owns the lock that guards both its own indexes and the
subscription index, so removing a connection and detaching it from every
topic happen as one step with respect to broadcasts.
"""

import asyncio
import uuid
from collections.abc import Callable
from typing import Any

from ..exceptions import ErrorContext
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import AuthenticatedIdentity, ConnectionRecord, ConnectionTransport
from .exceptions import AlreadyBoundError, ConnectionNotFoundError

logger = get_logger(__name__)

RemovalListener = Callable[[ConnectionRecord], None]


class ConnectionRegistry:
    """
    Tracks live connections and the user each one is bound to.

    Removal listeners run synchronously while the lock is held; they must not
    await.
    """

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self._connections: dict[str, ConnectionRecord] = {}
        self._user_connections: dict[str, set[str]] = {}
        self._removal_listeners: list[RemovalListener] = []
        self.total_registered = 0
        self.total_removed = 0

    def add_removal_listener(self, listener: RemovalListener) -> None:
        self._removal_listeners.append(listener)

    async def register(self, transport: ConnectionTransport) -> str:
        """Record a new connection and return its process-unique id."""
        connection_id = uuid.uuid4().hex
        record = ConnectionRecord(connection_id=connection_id, transport=transport)
        async with self.lock:
            self._connections[connection_id] = record
            self.total_registered += 1
        logger.info("Connection registered", connection_id=connection_id, total=len(self._connections))
        return connection_id

    async def remove(self, connection_id: str) -> ConnectionRecord | None:
        """
        Remove a connection and detach it from every topic.

        Returns the removed record, or None if it was already gone.
        """
        async with self.lock:
            record = self._connections.pop(connection_id, None)
            if record is None:
                return None

            if record.user_id is not None:
                user_connections = self._user_connections.get(record.user_id)
                if user_connections is not None:
                    user_connections.discard(connection_id)
                    if not user_connections:
                        del self._user_connections[record.user_id]

            for listener in self._removal_listeners:
                listener(record)

            if not record.lifecycle.is_closed:
                record.lifecycle.close()
            self.total_removed += 1

        logger.info(
            "Connection removed",
            connection_id=connection_id,
            user_id=record.user_id,
            remaining=len(self._connections),
        )
        return record

    async def bind_identity(self, connection_id: str, identity: AuthenticatedIdentity) -> bool:
        """
        Bind a user identity to a connection.

        Returns True when the identity was newly bound, False when the same
        user was already bound.

        Raises:
            ConnectionNotFoundError: If the connection is not registered
            AlreadyBoundError: If a different user is already bound
        """
        async with self.lock:
            record = self.lookup(connection_id)
            if record.user_id is not None:
                if record.user_id == identity.user_id:
                    return False
                raise AlreadyBoundError(
                    record.user_id,
                    identity.user_id,
                    ErrorContext(connection_id=connection_id, user_id=record.user_id),
                )

            record.user_id = identity.user_id
            record.display_name = identity.display_name
            self._user_connections.setdefault(identity.user_id, set()).add(connection_id)
            record.lifecycle.authenticate()

        logger.info("Identity bound to connection", connection_id=connection_id, user_id=identity.user_id)
        return True

    def lookup(self, connection_id: str) -> ConnectionRecord:
        """
        Return the record for a live connection.

        Raises:
            ConnectionNotFoundError: If the connection is not registered
        """
        record = self._connections.get(connection_id)
        if record is None:
            raise ConnectionNotFoundError(connection_id, ErrorContext(connection_id=connection_id))
        return record

    def get(self, connection_id: str) -> ConnectionRecord | None:
        return self._connections.get(connection_id)

    def contains(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def connections_for_user(self, user_id: str) -> set[str]:
        return set(self._user_connections.get(user_id, ()))

    def is_user_online(self, user_id: str) -> bool:
        return bool(self._user_connections.get(user_id))

    def online_user_ids(self) -> list[str]:
        return list(self._user_connections)

    def connection_ids(self) -> list[str]:
        return list(self._connections)

    def connection_count(self) -> int:
        return len(self._connections)

    def user_count(self) -> int:
        return len(self._user_connections)

    def get_stats(self) -> dict[str, Any]:
        authenticated = sum(1 for record in self._connections.values() if record.is_authenticated)
        return {
            "total_connections": len(self._connections),
            "authenticated_connections": authenticated,
            "anonymous_connections": len(self._connections) - authenticated,
            "online_users": len(self._user_connections),
            "total_registered": self.total_registered,
            "total_removed": self.total_removed,
        }
