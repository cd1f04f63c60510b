"""
Centralized error types and constants for the journal realtime server.

This module defines standardized error types and constants so WebSocket
error events and HTTP error bodies share one vocabulary.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorType(Enum):
    """Standardized error types for consistent categorization."""

    # Authentication and Authorization
    AUTHENTICATION_FAILED = "authentication_failed"
    AUTHORIZATION_DENIED = "authorization_denied"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    ALREADY_AUTHENTICATED = "already_authenticated"
    NOT_AUTHENTICATED = "not_authenticated"

    # Validation Errors
    VALIDATION_ERROR = "validation_error"
    MALFORMED_PAYLOAD = "malformed_payload"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_FORMAT = "invalid_format"
    MESSAGE_TOO_LARGE = "message_too_large"
    UNKNOWN_EVENT = "unknown_event"

    # Resource Errors
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONNECTION_NOT_FOUND = "connection_not_found"
    NOT_SUBSCRIBED = "not_subscribed"

    # Rate Limiting
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"

    # Configuration and System
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"

    # Real-time Communication
    WEBSOCKET_ERROR = "websocket_error"
    MESSAGE_PROCESSING_ERROR = "message_processing_error"


class ErrorSeverity(Enum):
    """Error severity levels for categorization."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def create_standard_error_response(
    error_type: ErrorType,
    message: str,
    user_friendly: str | None = None,
    details: dict[str, Any] | None = None,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
) -> dict[str, Any]:
    """
    Create a standardized HTTP error response body.

    Args:
        error_type: The type of error
        message: Technical error message
        user_friendly: User-friendly error message (optional)
        details: Additional error details (optional)
        severity: Error severity level (optional)

    Returns:
        Standardized error response dictionary
    """
    return {
        "error": {
            "type": error_type.value,
            "message": message,
            "user_friendly": user_friendly or message,
            "details": details or {},
            "severity": severity.value,
            "timestamp": datetime.now(UTC).isoformat(),
        }
    }


def create_websocket_error_response(
    error_type: ErrorType,
    message: str,
    user_friendly: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a standardized WebSocket error event body.

    The result lacks a timestamp; it is stamped when wrapped in the outbound
    envelope.

    Args:
        error_type: The type of error
        message: Technical error message
        user_friendly: User-friendly error message (optional)
        details: Additional error details (optional)

    Returns:
        WebSocket error response dictionary
    """
    return {
        "type": "error",
        "error_type": error_type.value,
        "message": message,
        "user_friendly": user_friendly or message,
        "details": details or {},
    }


class ErrorMessages:
    """User-facing error messages."""

    # Authentication
    AUTHENTICATION_REQUIRED = "Authentication required"
    INVALID_TOKEN = "Your session is invalid. Please log in again."
    TOKEN_EXPIRED = "Your session has expired. Please log in again."
    ALREADY_AUTHENTICATED = "This connection is already signed in as another user"

    # Validation
    MALFORMED_PAYLOAD = "Invalid message format"
    MISSING_REQUIRED_FIELD = "Required field is missing"
    MESSAGE_TOO_LARGE = "Message is too large"
    UNKNOWN_EVENT = "Unsupported message type"

    # Resources
    CONNECTION_NOT_FOUND = "Connection not found"
    NOT_SUBSCRIBED = "Join the conversation before sending to it"
    NOT_IN_GAME = "Join the game before playing"

    # System
    INTERNAL_ERROR = "An internal error occurred"
    TOO_MANY_REQUESTS = "Too many requests. Please try again later."
    MESSAGE_PROCESSING_ERROR = "Error processing message"
