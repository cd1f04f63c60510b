"""
Shared types for event handlers.

A handler is an async function taking an EventContext and a validated payload
model; an EventRoute ties it to an event type in the dispatcher table.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from ...exceptions import ErrorContext
from ..connection_models import ConnectionRecord
from ..envelope import build_event
from ..event_schemas import EmptyPayload
from ..exceptions import NotSubscribedError

if TYPE_CHECKING:
    from ..auth_binder import AuthBinder
    from ..connection_registry import ConnectionRegistry
    from ..game_rooms import GameRoomService
    from ..messaging.broadcaster import MessageBroadcaster
    from ..subscription_manager import SubscriptionManager


@dataclass
class RealtimeServices:
    """Collaborators handlers may use."""

    registry: "ConnectionRegistry"
    subscriptions: "SubscriptionManager"
    auth_binder: "AuthBinder"
    broadcaster: "MessageBroadcaster"
    games: "GameRoomService"


@dataclass
class EventContext:
    """The connection an inbound event came from, plus the services to act on it."""

    connection_id: str
    record: ConnectionRecord
    services: RealtimeServices
    event_type: str

    @property
    def user_id(self) -> str | None:
        return self.record.user_id

    async def reply(self, event_type: str, **fields: Any) -> bool:
        """Send an event back to the originating connection only."""
        return await self.services.broadcaster.send_to_connection(self.connection_id, build_event(event_type, **fields))

    def require_subscription(self, topic_id: str) -> None:
        """
        Raises:
            NotSubscribedError: If this connection has not joined topic_id
        """
        if not self.services.subscriptions.is_subscribed(self.connection_id, topic_id):
            raise NotSubscribedError(
                topic_id,
                ErrorContext(
                    connection_id=self.connection_id,
                    user_id=self.user_id,
                    topic_id=topic_id,
                    event_type=self.event_type,
                ),
            )


EventHandler = Callable[[EventContext, Any], Awaitable[None]]


@dataclass(frozen=True)
class EventRoute:
    """Dispatcher table entry."""

    event_type: str
    handler: EventHandler
    payload_model: type[BaseModel] = EmptyPayload
    requires_auth: bool = True
