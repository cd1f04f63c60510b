"""
Single-connection delivery.

Writes to one connection are serialized by that connection's send lock, so
events reach it in the order they were handed over. A write that fails or
exceeds the send timeout marks the transport dead and removes it from the
registry.
"""

import asyncio
from typing import Any

from fastapi import WebSocketDisconnect

from ...structured_logging.enhanced_logging_config import get_logger
from ..connection_models import ConnectionRecord
from ..connection_registry import ConnectionRegistry
from ..envelope import encode_event

logger = get_logger(__name__)

# WebSocket close code for a server-side failure on the connection
CLOSE_CODE_SERVER_ERROR = 1011


class ConnectionMessageSender:
    """Sends envelopes to individual connections and tracks delivery counters."""

    def __init__(self, registry: ConnectionRegistry, send_timeout: float = 5.0) -> None:
        self._registry = registry
        self._send_timeout = send_timeout
        self.delivered = 0
        self.failed = 0
        self.skipped = 0

    async def send(self, connection_id: str, event: dict[str, Any]) -> bool:
        """
        Deliver one event to one connection.

        Returns:
            bool: True if the frame was written, False if the connection was
            gone, or the write failed
        """
        record = self._registry.get(connection_id)
        if record is None:
            self.skipped += 1
            return False

        payload = encode_event(event)
        failure: str | None = None
        async with record.send_lock:
            # The connection may have been removed while waiting for the lock
            if not self._registry.contains(connection_id):
                self.skipped += 1
                return False
            try:
                await asyncio.wait_for(record.transport.send_text(payload), timeout=self._send_timeout)
            except TimeoutError:
                failure = "send timeout"
            except (WebSocketDisconnect, RuntimeError, ConnectionError, OSError) as e:
                failure = str(e) or type(e).__name__

        if failure is None:
            self.delivered += 1
            return True

        self.failed += 1
        logger.warning(
            "Delivery failed, dropping connection",
            connection_id=connection_id,
            user_id=record.user_id,
            event_type=event.get("type"),
            error=failure,
        )
        await self.close_connection(record, CLOSE_CODE_SERVER_ERROR)
        return False

    async def close_connection(self, record: ConnectionRecord, code: int, reason: str | None = None) -> None:
        """Remove a connection from the registry and close its transport."""
        await self._registry.remove(record.connection_id)
        try:
            await record.transport.close(code=code, reason=reason)
        except (WebSocketDisconnect, RuntimeError, ConnectionError, OSError) as e:
            logger.debug("Transport already closed", connection_id=record.connection_id, error=str(e))

    def get_stats(self) -> dict[str, int]:
        return {
            "delivered": self.delivered,
            "failed": self.failed,
            "skipped": self.skipped,
        }
