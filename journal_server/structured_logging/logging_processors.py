"""
Logging processors for structlog event processing.

This module provides processors for redacting credentials and stamping
log entries with connection context before they are rendered.
"""

import re
import uuid
from typing import Any

# Field names that must never reach a log sink in clear text
_SENSITIVE_PATTERNS = [
    r"\bpassword\b",
    r"\btoken\b",
    r"\bsecret\b",
    r"_key\b",
    r"^key$",
    r"\bcredential\b",
    r"\bjwt\b",
    r"\bbearer\b",
    r"\bauthorization\b",
    r"\bpush_token\b",
]

# Keys that match a pattern above but carry no secret material
_SAFE_FIELDS = {
    "token_length",
    "has_token",
    "token_source",
}


def _is_sensitive(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in _SAFE_FIELDS:
        return False
    return any(re.search(pattern, key_lower) for pattern in _SENSITIVE_PATTERNS)


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive data from log entries.

    Bearer tokens travel over the socket in the `auth` event and in the
    handshake query string, so anything that looks like a credential is
    replaced with "[REDACTED]", recursively through nested dictionaries.

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to sanitize

    Returns:
        Sanitized event dictionary
    """

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            if isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
            elif isinstance(key, str) and _is_sensitive(key):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = value
        return sanitized

    return sanitize_dict(event_dict)


def add_correlation_id(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Add correlation ID to log entries if not already present.

    Connection loops bind their own correlation id through contextvars; this
    only fills the gap for log lines emitted outside any connection.
    """
    if "correlation_id" not in event_dict:
        event_dict["correlation_id"] = str(uuid.uuid4())

    return event_dict


def stringify_uuids(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Render UUID values as plain strings so the JSON renderer never chokes on them."""
    for key, value in list(event_dict.items()):
        if isinstance(value, uuid.UUID):
            event_dict[key] = str(value)
    return event_dict
