"""
Offline push delivery worker.

Notifications for users with no live connection are queued and pushed by a
single background task, so a slow or failing push service never stalls a
broadcast and every failure is counted.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..structured_logging.enhanced_logging_config import get_logger
from .directory import PushTokenDirectory
from .expo_push import ExpoPushClient

logger = get_logger(__name__)


@dataclass
class PushMessage:
    user_id: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


class OfflineNotifier:
    """Queue plus worker that turns offline notifications into Expo pushes."""

    def __init__(
        self,
        push_client: ExpoPushClient | None,
        tokens: PushTokenDirectory,
        queue_size: int = 1000,
        drain_timeout: float = 5.0,
    ) -> None:
        """
        Args:
            push_client: Expo client; None disables push delivery
            tokens: Push token lookup
            queue_size: Maximum queued messages before new ones are dropped
            drain_timeout: Seconds stop() waits for the queue to empty
        """
        self._push_client = push_client
        self._tokens = tokens
        self._queue: asyncio.Queue[PushMessage] = asyncio.Queue(maxsize=queue_size)
        self._drain_timeout = drain_timeout
        self._worker: asyncio.Task[None] | None = None
        self.queued = 0
        self.pushed = 0
        self.failed = 0
        self.dropped = 0
        self.no_token = 0

    @property
    def enabled(self) -> bool:
        return self._push_client is not None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, message: PushMessage) -> bool:
        """Queue a push; returns False when push is disabled or the queue is full."""
        if not self.enabled:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Offline notification queue full, dropping", user_id=message.user_id)
            return False
        self.queued += 1
        return True

    async def start(self) -> None:
        if not self.enabled or self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="offline-notifier")
        logger.info("Offline notifier started")

    async def stop(self) -> None:
        """Wait briefly for queued pushes, then stop the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
        except TimeoutError:
            logger.warning("Offline notifier stopped with pending pushes", pending=self._queue.qsize())
        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
        logger.info("Offline notifier stopped", **self.get_stats())

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.deliver(message)
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one bad push must not stop the worker
                self.failed += 1
                logger.error(
                    "Unexpected error delivering push",
                    user_id=message.user_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
            finally:
                self._queue.task_done()

    async def deliver(self, message: PushMessage) -> bool:
        """Push one message to every device of its user."""
        assert self._push_client is not None
        tokens = await self._tokens.get_push_tokens(message.user_id)
        if not tokens:
            self.no_token += 1
            logger.debug("No push token for offline user", user_id=message.user_id)
            return False

        try:
            accepted = await self._push_client.send(tokens, message.title, message.body, message.data)
        except httpx.HTTPError as e:
            self.failed += 1
            logger.error("Push delivery failed", user_id=message.user_id, error=str(e), error_type=type(e).__name__)
            return False

        if accepted:
            self.pushed += 1
            logger.info("Push notification sent", user_id=message.user_id, title=message.title, accepted=accepted)
            return True
        self.failed += 1
        return False

    def get_stats(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "pending": self._queue.qsize(),
            "queued": self.queued,
            "pushed": self.pushed,
            "failed": self.failed,
            "dropped": self.dropped,
            "no_token": self.no_token,
        }
