"""
Topic subscription management for the journal realtime server.

This module keeps the many-to-many index between topics and live
connections. Topics exist only while they have at least one subscriber.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from ..error_types import ErrorType
from ..exceptions import ErrorContext
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ConnectionRecord
from .connection_registry import ConnectionRegistry
from .exceptions import MalformedPayloadError, NotAuthenticatedError
from .topics import parse_topic

logger = get_logger(__name__)

TopicEmptiedListener = Callable[[str], None]


class SubscriptionManager:
    """
    Manages topic subscriptions.

    Shares the registry lock so that subscribe, unsubscribe and connection
    removal never interleave with a broadcast snapshot.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry
        # topic_id -> set of connection_ids
        self._topics: dict[str, set[str]] = {}
        self._emptied_listeners: list[TopicEmptiedListener] = []
        registry.add_removal_listener(self._on_connection_removed)

    def add_topic_emptied_listener(self, listener: TopicEmptiedListener) -> None:
        """Register a callback run, under the lock, when a topic loses its last subscriber."""
        self._emptied_listeners.append(listener)

    async def subscribe(self, connection_id: str, topic_id: str) -> bool:
        """
        Subscribe a connection to a topic.

        Args:
            connection_id: Live connection id
            topic_id: Topic such as "journal:42"

        Returns:
            bool: True if the subscription is new, False if it already existed

        Raises:
            ConnectionNotFoundError: If the connection is not registered
            NotAuthenticatedError: If the connection has no bound identity
        """
        self._validate_topic(topic_id, connection_id)
        async with self._registry.lock:
            record = self._registry.lookup(connection_id)
            if not record.is_authenticated:
                raise NotAuthenticatedError(
                    "Subscribe requires authentication",
                    ErrorContext(connection_id=connection_id, topic_id=topic_id),
                )

            if topic_id in record.subscribed_topics:
                return False

            self._topics.setdefault(topic_id, set()).add(connection_id)
            record.subscribed_topics.add(topic_id)

        logger.debug("Connection subscribed to topic", connection_id=connection_id, topic_id=topic_id)
        return True

    async def unsubscribe(self, connection_id: str, topic_id: str) -> bool:
        """
        Remove a subscription; a missing subscription is a no-op.

        Returns:
            bool: True if a subscription was removed
        """
        async with self._registry.lock:
            record = self._registry.get(connection_id)
            if record is None or topic_id not in record.subscribed_topics:
                return False
            record.subscribed_topics.discard(topic_id)
            self._discard(topic_id, connection_id)

        logger.debug("Connection unsubscribed from topic", connection_id=connection_id, topic_id=topic_id)
        return True

    def subscribers_of(self, topic_id: str) -> set[str]:
        """Return a copy of the connection ids subscribed to a topic."""
        return self._topics.get(topic_id, set()).copy()

    def topics_of(self, connection_id: str) -> set[str]:
        record = self._registry.get(connection_id)
        if record is None:
            return set()
        return record.subscribed_topics.copy()

    def is_subscribed(self, connection_id: str, topic_id: str) -> bool:
        return connection_id in self._topics.get(topic_id, ())

    def has_topic(self, topic_id: str) -> bool:
        return topic_id in self._topics

    def subscriber_count(self, topic_id: str) -> int:
        return len(self._topics.get(topic_id, ()))

    def online_users_in(self, topic_id: str) -> set[str]:
        """Distinct user ids with at least one connection subscribed to the topic."""
        users: set[str] = set()
        for connection_id in self._topics.get(topic_id, ()):
            record = self._registry.get(connection_id)
            if record is not None and record.user_id is not None:
                users.add(record.user_id)
        return users

    def topic_count(self) -> int:
        return len(self._topics)

    def get_stats(self) -> dict[str, Any]:
        """Get subscription statistics grouped by topic kind."""
        by_kind: dict[str, int] = {}
        for topic_id in self._topics:
            kind = topic_id.partition(":")[0]
            by_kind[kind] = by_kind.get(kind, 0) + 1
        return {
            "total_topics": len(self._topics),
            "total_subscriptions": sum(len(subs) for subs in self._topics.values()),
            "topics_by_kind": by_kind,
        }

    def _on_connection_removed(self, record: ConnectionRecord) -> None:
        for topic_id in list(record.subscribed_topics):
            self._discard(topic_id, record.connection_id)
        record.subscribed_topics.clear()

    def _discard(self, topic_id: str, connection_id: str) -> None:
        subscribers = self._topics.get(topic_id)
        if subscribers is None:
            return
        subscribers.discard(connection_id)
        if subscribers:
            return

        del self._topics[topic_id]
        logger.debug("Topic garbage-collected", topic_id=topic_id)
        for listener in self._emptied_listeners:
            listener(topic_id)

    @staticmethod
    def _validate_topic(topic_id: str, connection_id: str) -> None:
        try:
            parse_topic(topic_id)
        except ValueError as e:
            raise MalformedPayloadError(
                str(e),
                ErrorContext(connection_id=connection_id, topic_id=topic_id),
                error_type=ErrorType.INVALID_FORMAT,
            ) from e
