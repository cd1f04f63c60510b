"""
Publish hooks for the HTTP collaborators.

When the message service stores a journal message, or another service wants to
notify a user or their partner, it calls into NotificationService. Live
connections get the event through the broadcaster; users with no live
connection fall back to an Expo push via the OfflineNotifier.
"""

from typing import Any

from ..realtime.connection_registry import ConnectionRegistry
from ..realtime.envelope import build_event
from ..realtime.messaging.broadcaster import MessageBroadcaster
from ..realtime.subscription_manager import SubscriptionManager
from ..realtime.topics import journal_topic
from ..structured_logging.enhanced_logging_config import get_logger
from .directory import PartnerDirectory
from .offline_notifier import OfflineNotifier, PushMessage

logger = get_logger(__name__)

MESSAGE_PREVIEW_LENGTH = 50


def _preview(text: str) -> str:
    if len(text) <= MESSAGE_PREVIEW_LENGTH:
        return text
    return text[:MESSAGE_PREVIEW_LENGTH] + "..."


class NotificationService:
    """Fan-out entry points used by the internal API."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        subscriptions: SubscriptionManager,
        broadcaster: MessageBroadcaster,
        partners: PartnerDirectory,
        offline: OfflineNotifier,
    ) -> None:
        self._registry = registry
        self._subscriptions = subscriptions
        self._broadcaster = broadcaster
        self._partners = partners
        self._offline = offline

    async def publish_journal_message(
        self,
        journal_id: str,
        message: dict[str, Any],
        recipient_user_id: str | None = None,
        sender_name: str | None = None,
    ) -> dict[str, Any]:
        """
        Broadcast a stored journal message to the journal's live subscribers.

        If a recipient is named and none of their connections is watching the
        journal, a push notification is queued for them.
        """
        topic_id = journal_topic(journal_id)
        delivered = await self._broadcaster.broadcast_to_topic(
            topic_id, build_event("new_message", **{**message, "journalId": journal_id})
        )

        push_queued = False
        if recipient_user_id is not None and recipient_user_id not in self._subscriptions.online_users_in(topic_id):
            content = str(message.get("content") or message.get("text") or "")
            push_queued = self._offline.enqueue(
                PushMessage(
                    user_id=recipient_user_id,
                    title="New Journal Message",
                    body=f"{sender_name}: {_preview(content)}" if sender_name else _preview(content),
                    data={"type": "journal-message", "journalId": journal_id, "senderUsername": sender_name},
                )
            )

        logger.info(
            "Journal message published",
            journal_id=journal_id,
            delivered=delivered,
            push_queued=push_queued,
        )
        return {"delivered": delivered, "push_queued": push_queued}

    async def notify_user(self, user_id: str, notification: dict[str, Any]) -> dict[str, Any]:
        """Send a `notification` event to every device of a user, or queue a push if they are offline."""
        delivered = await self._broadcaster.broadcast_to_user(user_id, build_event("notification", **notification))

        push_queued = False
        if delivered == 0:
            title = notification.get("title")
            body = notification.get("body") or notification.get("message")
            if title or body:
                push_queued = self._offline.enqueue(
                    PushMessage(
                        user_id=user_id,
                        title=str(title or ""),
                        body=str(body or ""),
                        data=dict(notification.get("data") or {"type": notification.get("notificationType")}),
                    )
                )

        logger.debug("User notified", target_user_id=user_id, delivered=delivered, push_queued=push_queued)
        return {"delivered": delivered, "push_queued": push_queued}

    async def notify_partner(self, user_id: str, notification: dict[str, Any]) -> dict[str, Any]:
        """Notify the partner of user_id; a user without a partner is a no-op."""
        partner_id = await self._partners.get_partner_id(user_id)
        if partner_id is None:
            logger.debug("No partner to notify", user_id=user_id)
            return {"partner_id": None, "delivered": 0, "push_queued": False}

        result = await self.notify_user(partner_id, notification)
        return {"partner_id": partner_id, **result}
