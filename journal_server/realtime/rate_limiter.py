"""
Per-connection inbound message rate limiting.

A frame over the limit is answered with a rate_limit_exceeded error and
dropped; the connection stays open.
"""

import time
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class MessageRateLimiter:
    """Sliding-window message counter keyed by connection id."""

    def __init__(self, max_messages_per_window: int = 600, window_seconds: int = 60) -> None:
        """
        Args:
            max_messages_per_window: Frames allowed per connection per window
            window_seconds: Window length in seconds
        """
        self.message_attempts: dict[str, list[float]] = {}
        self.max_messages = max_messages_per_window
        self.window_seconds = window_seconds

    def check_message_rate_limit(self, connection_id: str) -> bool:
        """
        Record a frame and report whether it is within the limit.

        Returns:
            bool: True if the frame is allowed, False if the limit is exceeded
        """
        current_time = time.time()
        attempts = [
            attempt_time
            for attempt_time in self.message_attempts.get(connection_id, [])
            if current_time - attempt_time < self.window_seconds
        ]
        self.message_attempts[connection_id] = attempts

        if len(attempts) >= self.max_messages:
            logger.warning(
                "Message rate limit exceeded",
                connection_id=connection_id,
                message_count=len(attempts),
                max_messages=self.max_messages,
            )
            return False

        attempts.append(current_time)
        return True

    def retry_after(self, connection_id: str) -> int:
        """Seconds until the oldest counted frame leaves the window."""
        attempts = self.message_attempts.get(connection_id)
        if not attempts:
            return 0
        return max(0, int(attempts[0] + self.window_seconds - time.time()) + 1)

    def get_message_rate_limit_info(self, connection_id: str) -> dict[str, Any]:
        current_time = time.time()
        recent = [t for t in self.message_attempts.get(connection_id, []) if current_time - t < self.window_seconds]
        return {
            "attempts": len(recent),
            "max_attempts": self.max_messages,
            "window_seconds": self.window_seconds,
            "attempts_remaining": max(0, self.max_messages - len(recent)),
        }

    def remove_connection_message_data(self, connection_id: str) -> None:
        if self.message_attempts.pop(connection_id, None) is not None:
            logger.debug("Removed message rate limit data", connection_id=connection_id)

    def get_stats(self) -> dict[str, Any]:
        return {
            "tracked_connections": len(self.message_attempts),
            "max_messages_per_window": self.max_messages,
            "window_seconds": self.window_seconds,
        }
