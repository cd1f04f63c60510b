"""
Internal API for the HTTP collaborators.

The message service calls these after persisting a journal message; the
partner and account services call them to notify users and to keep partner
links and push tokens in sync. Every route requires the X-Internal-Token
header.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..container import RealtimeContainer
from ..realtime.topics import journal_topic
from ..structured_logging.enhanced_logging_config import get_logger
from .dependencies import get_container, require_internal_token

logger = get_logger(__name__)

internal_router = APIRouter(
    prefix="/internal",
    tags=["internal"],
    dependencies=[Depends(require_internal_token)],
)


class JournalMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: dict[str, Any]
    recipient_user_id: str | None = Field(default=None, alias="recipientUserId")
    sender_name: str | None = Field(default=None, alias="senderName")


class NotificationRequest(BaseModel):
    """Notification body; extra fields are forwarded to the client untouched."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: str | None = None
    body: str | None = None
    notification_type: str | None = Field(default=None, alias="notificationType")
    data: dict[str, Any] | None = None

    def to_event_fields(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PartnerLinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    partner_id: str | None = Field(default=None, alias="partnerId")


class PushTokensRequest(BaseModel):
    tokens: list[str] = Field(default_factory=list)


@internal_router.post("/journals/{journal_id}/messages")
async def publish_journal_message(
    journal_id: str,
    request: JournalMessageRequest,
    container: RealtimeContainer = Depends(get_container),
) -> dict[str, Any]:
    """Fan a stored message out to the journal's live subscribers as `new_message`."""
    return await container.notifications.publish_journal_message(
        journal_id,
        request.message,
        recipient_user_id=request.recipient_user_id,
        sender_name=request.sender_name,
    )


@internal_router.post("/users/{user_id}/notifications")
async def notify_user(
    user_id: str,
    request: NotificationRequest,
    container: RealtimeContainer = Depends(get_container),
) -> dict[str, Any]:
    return await container.notifications.notify_user(user_id, request.to_event_fields())


@internal_router.post("/users/{user_id}/partner-notifications")
async def notify_partner(
    user_id: str,
    request: NotificationRequest,
    container: RealtimeContainer = Depends(get_container),
) -> dict[str, Any]:
    return await container.notifications.notify_partner(user_id, request.to_event_fields())


@internal_router.put("/users/{user_id}/partner")
async def set_partner(
    user_id: str,
    request: PartnerLinkRequest,
    container: RealtimeContainer = Depends(get_container),
) -> dict[str, Any]:
    container.directory.set_partner(user_id, request.partner_id)
    logger.info("Partner link updated", user_id=user_id, partner_id=request.partner_id)
    return {"userId": user_id, "partnerId": request.partner_id}


@internal_router.put("/users/{user_id}/push-tokens")
async def set_push_tokens(
    user_id: str,
    request: PushTokensRequest,
    container: RealtimeContainer = Depends(get_container),
) -> dict[str, Any]:
    container.directory.set_push_tokens(user_id, request.tokens)
    return {"userId": user_id, "tokens": len(request.tokens)}


@internal_router.get("/users/{user_id}/presence")
async def get_user_presence(user_id: str, container: RealtimeContainer = Depends(get_container)) -> dict[str, Any]:
    connections = container.registry.connections_for_user(user_id)
    return {"userId": user_id, "online": bool(connections), "connections": len(connections)}


@internal_router.get("/journals/{journal_id}/presence")
async def get_journal_presence(
    journal_id: str, container: RealtimeContainer = Depends(get_container)
) -> dict[str, Any]:
    topic_id = journal_topic(journal_id)
    return {
        "journalId": journal_id,
        "onlineCount": container.subscriptions.subscriber_count(topic_id),
        "onlineUsers": sorted(container.subscriptions.online_users_in(topic_id)),
    }
