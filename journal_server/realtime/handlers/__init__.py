"""Inbound event handlers, grouped by concern."""

from .base import EventContext, EventRoute, RealtimeServices
from .game_handlers import ROUTES as GAME_ROUTES
from .journal_handlers import ROUTES as JOURNAL_ROUTES
from .session_handlers import ROUTES as SESSION_ROUTES

DEFAULT_ROUTES = [*SESSION_ROUTES, *JOURNAL_ROUTES, *GAME_ROUTES]

__all__ = ["DEFAULT_ROUTES", "EventContext", "EventRoute", "RealtimeServices"]
