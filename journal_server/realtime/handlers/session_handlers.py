"""Connection-level events: ping and deferred authentication."""

from ...structured_logging.enhanced_logging_config import get_logger
from ..event_schemas import AuthPayload, EmptyPayload
from .base import EventContext, EventRoute

logger = get_logger(__name__)


async def handle_ping(ctx: EventContext, _payload: EmptyPayload) -> None:
    await ctx.reply("pong")


async def handle_auth(ctx: EventContext, payload: AuthPayload) -> None:
    """Bind the token's identity to this connection and acknowledge it."""
    identity = await ctx.services.auth_binder.bind(ctx.connection_id, payload.token)
    await ctx.reply("auth_success", userId=identity.user_id, displayName=identity.display_name)


ROUTES = [
    EventRoute("ping", handle_ping, EmptyPayload, requires_auth=False),
    EventRoute("auth", handle_auth, AuthPayload, requires_auth=False),
]
