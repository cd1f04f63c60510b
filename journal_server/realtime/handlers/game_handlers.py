"""
Truth-or-dare events, scoped to `game:{coupleId}` rooms.

join_game puts the connection in the room; every other game event requires
the connection to already be in it.
"""

from ...error_types import ErrorMessages
from ...structured_logging.enhanced_logging_config import get_logger
from ..envelope import build_event
from ..event_schemas import DrawCardPayload, GamePayload, ToggleModePayload
from ..exceptions import NotSubscribedError
from ..topics import game_topic
from .base import EventContext, EventRoute

logger = get_logger(__name__)


def _require_room(ctx: EventContext, couple_id: str) -> str:
    topic_id = game_topic(couple_id)
    try:
        ctx.require_subscription(topic_id)
    except NotSubscribedError as e:
        e.user_friendly = ErrorMessages.NOT_IN_GAME
        raise
    return topic_id


async def handle_join_game(ctx: EventContext, payload: GamePayload) -> None:
    await ctx.services.games.join(ctx.connection_id, ctx.user_id, payload.couple_id)


async def handle_spin_bottle(ctx: EventContext, payload: GamePayload) -> None:
    _require_room(ctx, payload.couple_id)
    await ctx.services.games.start_spin(payload.couple_id, ctx.user_id)


async def handle_draw_card(ctx: EventContext, payload: DrawCardPayload) -> None:
    topic_id = _require_room(ctx, payload.couple_id)
    await ctx.services.broadcaster.broadcast_to_topic(
        topic_id,
        build_event(
            "card_drawn",
            coupleId=payload.couple_id,
            cardType=payload.card_type,
            text=payload.text,
            drawnBy=ctx.user_id,
        ),
    )


async def handle_next_turn(ctx: EventContext, payload: GamePayload) -> None:
    topic_id = _require_room(ctx, payload.couple_id)
    await ctx.services.broadcaster.broadcast_excluding(
        topic_id,
        build_event("your_turn", coupleId=payload.couple_id, fromUserId=ctx.user_id),
        ctx.connection_id,
    )


async def handle_toggle_mode(ctx: EventContext, payload: ToggleModePayload) -> None:
    topic_id = _require_room(ctx, payload.couple_id)
    await ctx.services.broadcaster.broadcast_to_topic(
        topic_id,
        build_event("mode_update", coupleId=payload.couple_id, isExtreme=payload.is_extreme, changedBy=ctx.user_id),
    )


ROUTES = [
    EventRoute("join_game", handle_join_game, GamePayload),
    EventRoute("spin_bottle", handle_spin_bottle, GamePayload),
    EventRoute("draw_card", handle_draw_card, DrawCardPayload),
    EventRoute("next_turn", handle_next_turn, GamePayload),
    EventRoute("toggle_mode", handle_toggle_mode, ToggleModePayload),
]
