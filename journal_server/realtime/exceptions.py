"""
Errors raised by the realtime core.

Each one is turned into an `error` event for the offending connection only;
none of them closes the socket.
"""

from ..error_types import ErrorMessages, ErrorType
from ..exceptions import (
    AuthenticationError,
    ErrorContext,
    JournalServerError,
    ResourceNotFoundError,
    ValidationError,
)


class RealtimeAuthError(AuthenticationError):
    """Credential verification or identity binding failed."""


class InvalidTokenError(RealtimeAuthError):
    """Token is malformed, badly signed or lacks a user id claim."""

    error_type = ErrorType.INVALID_TOKEN

    def __init__(self, message: str = "Invalid token", context: ErrorContext | None = None, **kwargs):
        kwargs.setdefault("user_friendly", ErrorMessages.INVALID_TOKEN)
        super().__init__(message, context, **kwargs)


class TokenExpiredError(RealtimeAuthError):
    """Token signature is valid but its expiry has passed."""

    error_type = ErrorType.TOKEN_EXPIRED

    def __init__(self, message: str = "Token has expired", context: ErrorContext | None = None, **kwargs):
        kwargs.setdefault("user_friendly", ErrorMessages.TOKEN_EXPIRED)
        super().__init__(message, context, **kwargs)


class AlreadyBoundError(RealtimeAuthError):
    """The connection is already bound to a different user."""

    error_type = ErrorType.ALREADY_AUTHENTICATED
    status_code = 409

    def __init__(self, bound_user_id: str, attempted_user_id: str, context: ErrorContext | None = None, **kwargs):
        kwargs.setdefault("user_friendly", ErrorMessages.ALREADY_AUTHENTICATED)
        super().__init__(
            "Connection already bound to another user",
            context,
            details={"bound_user_id": bound_user_id, "attempted_user_id": attempted_user_id},
            **kwargs,
        )


class NotAuthenticatedError(AuthenticationError):
    """An auth-gated operation was attempted before authentication."""

    error_type = ErrorType.NOT_AUTHENTICATED

    def __init__(self, message: str = "Not authenticated", context: ErrorContext | None = None, **kwargs):
        kwargs.setdefault("user_friendly", ErrorMessages.AUTHENTICATION_REQUIRED)
        super().__init__(message, context, **kwargs)


class NotSubscribedError(JournalServerError):
    """The connection tried to publish to a topic it has not joined."""

    error_type = ErrorType.NOT_SUBSCRIBED
    status_code = 403
    log_level = "warning"

    def __init__(self, topic_id: str, context: ErrorContext | None = None, **kwargs):
        kwargs.setdefault("user_friendly", ErrorMessages.NOT_SUBSCRIBED)
        super().__init__(f"Not subscribed to {topic_id}", context, **kwargs)
        self.topic_id = topic_id
        self.details["topic_id"] = topic_id


class ConnectionNotFoundError(ResourceNotFoundError):
    """No live connection has this id."""

    error_type = ErrorType.CONNECTION_NOT_FOUND

    def __init__(self, connection_id: str, context: ErrorContext | None = None, **kwargs):
        kwargs.setdefault("user_friendly", ErrorMessages.CONNECTION_NOT_FOUND)
        super().__init__(
            f"Connection {connection_id} not found",
            context,
            resource_type="connection",
            resource_id=connection_id,
            **kwargs,
        )


class MalformedPayloadError(ValidationError):
    """Inbound frame is not valid JSON, is too big, or misses required fields."""

    error_type = ErrorType.MALFORMED_PAYLOAD

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        error_type: ErrorType | None = None,
        **kwargs,
    ):
        kwargs.setdefault("user_friendly", ErrorMessages.MALFORMED_PAYLOAD)
        super().__init__(message, context, **kwargs)
        if error_type is not None:
            self.error_type = error_type


class UnknownEventError(ValidationError):
    """The event type has no route."""

    error_type = ErrorType.UNKNOWN_EVENT

    def __init__(self, event_type: str | None, context: ErrorContext | None = None, **kwargs):
        kwargs.setdefault("user_friendly", ErrorMessages.UNKNOWN_EVENT)
        super().__init__(f"Unknown event type: {event_type}", context, field="type", **kwargs)
        self.event_type = event_type
        self.details["event_type"] = event_type
