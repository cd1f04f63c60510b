"""
Dependency container for the journal realtime server.

Owns every realtime component and wires them together, so nothing in the
server is a module-level singleton.

USAGE:
    # In application startup (lifespan.py):
    container = RealtimeContainer(get_config())
    await container.start()
    app.state.container = container

    # In request handlers:
    container = request.app.state.container
"""

import random
import time
from typing import Any

from .config.models import AppConfig
from .notifications import InMemoryUserDirectory, NotificationService, OfflineNotifier
from .notifications.expo_push import ExpoPushClient
from .realtime.auth_binder import AuthBinder
from .realtime.connection_registry import ConnectionRegistry
from .realtime.dispatcher import EventDispatcher
from .realtime.game_rooms import GameRoomService
from .realtime.handlers import RealtimeServices
from .realtime.message_validator import WebSocketMessageValidator
from .realtime.messaging import ConnectionMessageSender, MessageBroadcaster
from .realtime.rate_limiter import MessageRateLimiter
from .realtime.subscription_manager import SubscriptionManager
from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

# WebSocket close code sent to clients when the server goes away
CLOSE_CODE_GOING_AWAY = 1001


class RealtimeContainer:
    """Composition root for the realtime core and its collaborators."""

    def __init__(
        self,
        config: AppConfig,
        *,
        rng: random.Random | None = None,
        push_client: ExpoPushClient | None = None,
        directory: InMemoryUserDirectory | None = None,
    ) -> None:
        realtime = config.realtime
        self.config = config
        self.started_at = time.time()

        self.registry = ConnectionRegistry()
        self.subscriptions = SubscriptionManager(self.registry)
        self.sender = ConnectionMessageSender(self.registry, send_timeout=realtime.send_timeout_seconds)
        self.broadcaster = MessageBroadcaster(self.registry, self.subscriptions, self.sender)
        self.auth_binder = AuthBinder.from_config(config.security, self.registry, self.subscriptions)
        self.games = GameRoomService(self.subscriptions, self.broadcaster, realtime.spin_duration_ms, rng)
        self.dispatcher = EventDispatcher(
            RealtimeServices(
                registry=self.registry,
                subscriptions=self.subscriptions,
                auth_binder=self.auth_binder,
                broadcaster=self.broadcaster,
                games=self.games,
            )
        )
        self.validator = WebSocketMessageValidator.from_config(realtime)
        self.rate_limiter = MessageRateLimiter(realtime.messages_per_minute, window_seconds=60)

        self.directory = directory or InMemoryUserDirectory()
        if push_client is None and config.push.enabled:
            push_client = ExpoPushClient(config.push.expo_url, timeout=config.push.request_timeout_seconds)
        self.offline_notifier = OfflineNotifier(push_client, self.directory, queue_size=config.push.queue_size)
        self.notifications = NotificationService(
            self.registry, self.subscriptions, self.broadcaster, self.directory, self.offline_notifier
        )

    async def start(self) -> None:
        await self.offline_notifier.start()
        logger.info(
            "Realtime container started",
            ws_path=self.config.realtime.ws_path,
            push_enabled=self.offline_notifier.enabled,
        )

    async def shutdown(self) -> None:
        """Cancel pending spins, close every live connection and stop the push worker."""
        await self.games.shutdown()
        for connection_id in self.registry.connection_ids():
            record = self.registry.get(connection_id)
            if record is not None:
                await self.sender.close_connection(record, CLOSE_CODE_GOING_AWAY, "Server shutting down")
        await self.offline_notifier.stop()
        logger.info("Realtime container shut down")

    def uptime(self) -> float:
        return time.time() - self.started_at

    def get_stats(self) -> dict[str, Any]:
        return {
            "connections": self.registry.get_stats(),
            "subscriptions": self.subscriptions.get_stats(),
            "delivery": self.broadcaster.get_stats(),
            "events": self.dispatcher.get_stats(),
            "games": self.games.get_stats(),
            "push": self.offline_notifier.get_stats(),
            "rate_limiter": self.rate_limiter.get_stats(),
            "uptime": self.uptime(),
        }
