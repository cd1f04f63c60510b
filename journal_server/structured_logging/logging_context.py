"""
Context management utilities for enhanced logging.

Each WebSocket receive loop runs in its own task, so binding contextvars at
the top of the loop tags every log line emitted while handling that
connection's frames with its connection id and, once authenticated, its
user id.
"""

import uuid
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def bind_connection_context(
    connection_id: str,
    user_id: str | None = None,
    correlation_id: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Bind connection context to the current logging context.

    Args:
        connection_id: Registry id of the live connection
        user_id: Bound user id, if the connection is authenticated
        correlation_id: Correlation id; generated when omitted
        **kwargs: Additional context variables
    """
    context_vars = {
        "connection_id": connection_id,
        "user_id": user_id,
        "correlation_id": correlation_id or str(uuid.uuid4()),
        **kwargs,
    }

    bind_contextvars(**{k: v for k, v in context_vars.items() if v is not None})


def clear_connection_context() -> None:
    """Clear the current connection context from logging."""
    clear_contextvars()


def get_current_context() -> dict[str, Any]:
    """Get the current logging context."""
    try:
        return structlog.contextvars.get_contextvars()
    except (AttributeError, KeyError):
        return {}
