"""
Event envelope utilities for journal real-time messages.

Every outbound WebSocket frame has the same flat shape:
- type: str
- timestamp: ISO 8601 UTC with 'Z'
- event-specific fields alongside
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any

from ..error_types import create_websocket_error_response
from ..exceptions import JournalServerError


class UUIDEncoder(json.JSONEncoder):
    """JSON encoder that renders UUID and datetime values as strings."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, uuid.UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def utc_now_z() -> str:
    """Return current UTC time in ISO 8601 format with 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_event(event_type: str, /, **fields: Any) -> dict[str, Any]:
    """
    Create an outbound event envelope.

    Args:
        event_type: Type of event, e.g. "user_typing"
        **fields: Event fields placed next to type and timestamp

    Returns:
        Envelope dict ready for serialization
    """
    event: dict[str, Any] = {"type": event_type, "timestamp": utc_now_z()}
    for key, value in fields.items():
        if key in ("type", "timestamp"):
            continue
        event[key] = value
    return event


def build_error_event(error: JournalServerError) -> dict[str, Any]:
    """Render a server error as an `error` event for the offending connection."""
    body = create_websocket_error_response(
        error.error_type,
        error.message,
        user_friendly=error.user_friendly,
        details=error.details,
    )
    body.pop("type")
    return build_event("error", **body)


def encode_event(event: dict[str, Any]) -> str:
    """Serialize an envelope for a text frame."""
    return json.dumps(event, cls=UUIDEncoder)
