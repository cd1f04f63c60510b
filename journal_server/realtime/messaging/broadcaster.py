"""
Topic and user fan-out.

This module provides broadcasting to topic subscribers, to every device of a
user, and to a topic minus the sending connection, with concurrent delivery.
"""

import asyncio
from typing import Any

from ...structured_logging.enhanced_logging_config import get_logger
from ..connection_registry import ConnectionRegistry
from ..subscription_manager import SubscriptionManager
from .connection_sender import ConnectionMessageSender

logger = get_logger(__name__)


class MessageBroadcaster:
    """
    Broadcasts events to live connections.

    A failed delivery to one connection never prevents delivery to the others;
    it is logged and counted, and the caller only sees the success count.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        subscriptions: SubscriptionManager,
        sender: ConnectionMessageSender,
    ) -> None:
        """
        Initialize the message broadcaster.

        Args:
            registry: ConnectionRegistry instance
            subscriptions: SubscriptionManager instance
            sender: ConnectionMessageSender used for each delivery
        """
        self.registry = registry
        self.subscriptions = subscriptions
        self.sender = sender
        self.total_broadcasts = 0

    async def broadcast_to_topic(
        self,
        topic_id: str,
        event: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> int:
        """
        Broadcast an event to every connection subscribed to a topic.

        Args:
            topic_id: Topic such as "journal:42"
            event: Outbound envelope
            exclude_connection_id: Connection to leave out, usually the sender

        Returns:
            int: Number of successful deliveries
        """
        async with self.registry.lock:
            targets = [cid for cid in self.subscriptions.subscribers_of(topic_id) if cid != exclude_connection_id]

        delivered = await self._deliver(targets, event)
        logger.debug(
            "Broadcast to topic",
            topic_id=topic_id,
            event_type=event.get("type"),
            targets=len(targets),
            delivered=delivered,
            excluded=exclude_connection_id,
        )
        return delivered

    async def broadcast_excluding(
        self,
        topic_id: str,
        event: dict[str, Any],
        exclude_connection_id: str,
    ) -> int:
        """Broadcast to a topic, skipping one connection."""
        return await self.broadcast_to_topic(topic_id, event, exclude_connection_id=exclude_connection_id)

    async def broadcast_to_user(self, user_id: str, event: dict[str, Any]) -> int:
        """
        Deliver an event to every live connection of a user.

        Returns:
            int: Number of successful deliveries; 0 when the user is offline
        """
        async with self.registry.lock:
            targets = list(self.registry.connections_for_user(user_id))

        delivered = await self._deliver(targets, event)
        logger.debug(
            "Broadcast to user",
            target_user_id=user_id,
            event_type=event.get("type"),
            targets=len(targets),
            delivered=delivered,
        )
        return delivered

    async def send_to_connection(self, connection_id: str, event: dict[str, Any]) -> bool:
        """Deliver an event to a single connection."""
        return await self.sender.send(connection_id, event)

    async def _deliver(self, targets: list[str], event: dict[str, Any]) -> int:
        self.total_broadcasts += 1
        if not targets:
            return 0

        results = await asyncio.gather(
            *[self.sender.send(connection_id, event) for connection_id in targets],
            return_exceptions=True,
        )

        delivered = 0
        for connection_id, result in zip(targets, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "Error sending message in broadcast",
                    connection_id=connection_id,
                    event_type=event.get("type"),
                    error=str(result),
                )
            elif result:
                delivered += 1
        return delivered

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_broadcasts": self.total_broadcasts,
            **self.sender.get_stats(),
        }
