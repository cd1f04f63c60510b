"""
Journal events: subscription management, typing indicators and read receipts.

Typing and read events are relayed to the other subscribers of the journal
only; the sender never hears its own indicator.
"""

from ...structured_logging.enhanced_logging_config import get_logger
from ..envelope import build_event
from ..event_schemas import JournalPayload, MessageReadPayload
from ..topics import journal_topic
from .base import EventContext, EventRoute

logger = get_logger(__name__)


async def handle_subscribe_journal(ctx: EventContext, payload: JournalPayload) -> None:
    topic_id = journal_topic(payload.journal_id)
    created = await ctx.services.subscriptions.subscribe(ctx.connection_id, topic_id)
    logger.info(
        "Journal subscription",
        connection_id=ctx.connection_id,
        user_id=ctx.user_id,
        journal_id=payload.journal_id,
        new_subscription=created,
    )
    await ctx.reply("journal_subscribed", journalId=payload.journal_id)


async def handle_unsubscribe_journal(ctx: EventContext, payload: JournalPayload) -> None:
    topic_id = journal_topic(payload.journal_id)
    await ctx.services.subscriptions.unsubscribe(ctx.connection_id, topic_id)
    await ctx.reply("journal_unsubscribed", journalId=payload.journal_id)


async def _relay_typing(ctx: EventContext, payload: JournalPayload, is_typing: bool) -> None:
    topic_id = journal_topic(payload.journal_id)
    ctx.require_subscription(topic_id)
    await ctx.services.broadcaster.broadcast_excluding(
        topic_id,
        build_event(
            "user_typing",
            userId=ctx.user_id,
            journalId=payload.journal_id,
            isTyping=is_typing,
        ),
        ctx.connection_id,
    )


async def handle_typing_start(ctx: EventContext, payload: JournalPayload) -> None:
    await _relay_typing(ctx, payload, True)


async def handle_typing_stop(ctx: EventContext, payload: JournalPayload) -> None:
    await _relay_typing(ctx, payload, False)


async def handle_message_read(ctx: EventContext, payload: MessageReadPayload) -> None:
    topic_id = journal_topic(payload.journal_id)
    ctx.require_subscription(topic_id)
    await ctx.services.broadcaster.broadcast_excluding(
        topic_id,
        build_event(
            "message_read",
            messageId=payload.message_id,
            userId=ctx.user_id,
            journalId=payload.journal_id,
        ),
        ctx.connection_id,
    )


ROUTES = [
    EventRoute("subscribe_journal", handle_subscribe_journal, JournalPayload),
    EventRoute("unsubscribe_journal", handle_unsubscribe_journal, JournalPayload),
    EventRoute("typing_start", handle_typing_start, JournalPayload),
    EventRoute("typing_stop", handle_typing_stop, JournalPayload),
    EventRoute("message_read", handle_message_read, MessageReadPayload),
]
