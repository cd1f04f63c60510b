"""
Exception hierarchy for the journal realtime server.

Every error raised by the server derives from JournalServerError, carries an
ErrorContext, and knows the ErrorType and HTTP status it maps to, so the
WebSocket layer and the HTTP layer can both render it without special cases.
"""

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .error_types import ErrorType
from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """
    Contextual information for error handling.

    Provides structured context for error reporting and debugging.
    """

    user_id: str | None = None
    connection_id: str | None = None
    topic_id: str | None = None
    event_type: str | None = None
    request_id: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "user_id": self.user_id,
            "connection_id": self.connection_id,
            "topic_id": self.topic_id,
            "event_type": self.event_type,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class JournalServerError(Exception):
    """
    Base exception for all journal server errors.

    Provides structured error handling with context and metadata
    for proper error categorization and debugging.
    """

    error_type: ErrorType = ErrorType.INTERNAL_ERROR
    status_code: int = 500
    log_level: str = "error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
        user_friendly: str | None = None,
    ):
        """
        Initialize the error.

        Args:
            message: Technical error message
            context: Error context information
            details: Additional error details
            user_friendly: User-friendly error message
        """
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}
        self.user_friendly = user_friendly or message
        self.timestamp = datetime.now()

        self._log_error()

    def _log_error(self) -> None:
        """Log the error with structured context."""
        log_method = getattr(logger, self.log_level, logger.error)
        log_method(
            "Journal server error occurred",
            error_type=self.__class__.__name__,
            message=self.message,
            context=self.context.to_dict(),
            details=self.details,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "user_friendly": self.user_friendly,
            "context": self.context.to_dict(),
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class AuthenticationError(JournalServerError):
    """Authentication and authorization errors."""

    error_type = ErrorType.AUTHENTICATION_FAILED
    status_code = 401
    log_level = "warning"

    def __init__(self, message: str, context: ErrorContext | None = None, auth_type: str = "jwt", **kwargs):
        super().__init__(message, context, **kwargs)
        self.auth_type = auth_type
        self.details["auth_type"] = auth_type


class ValidationError(JournalServerError):
    """Data validation errors."""

    error_type = ErrorType.VALIDATION_ERROR
    status_code = 422
    log_level = "warning"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        field: str | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.field = field
        if field:
            self.details["field"] = field


class ResourceNotFoundError(JournalServerError):
    """Resource not found errors."""

    error_type = ErrorType.RESOURCE_NOT_FOUND
    status_code = 404
    log_level = "warning"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id
        if resource_type:
            self.details["resource_type"] = resource_type
        if resource_id:
            self.details["resource_id"] = resource_id


class RateLimitError(JournalServerError):
    """Rate limiting errors."""

    error_type = ErrorType.RATE_LIMIT_EXCEEDED
    status_code = 429
    log_level = "warning"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        limit_type: str = "messages",
        retry_after: int | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.limit_type = limit_type
        self.retry_after = retry_after
        self.details["limit_type"] = limit_type
        if retry_after:
            self.details["retry_after"] = retry_after


def create_error_context(**kwargs) -> ErrorContext:
    """
    Create an error context with the given parameters.

    Args:
        **kwargs: Context parameters

    Returns:
        ErrorContext object
    """
    return ErrorContext(**kwargs)


def handle_exception(exc: Exception, context: ErrorContext | None = None) -> JournalServerError:
    """
    Convert a generic exception to a JournalServerError.

    Args:
        exc: The original exception
        context: Error context

    Returns:
        JournalServerError instance
    """
    if isinstance(exc, JournalServerError):
        return exc

    if isinstance(exc, ValueError | TypeError):
        return ValidationError(str(exc), context, details={"original_type": type(exc).__name__})
    return JournalServerError(
        str(exc), context, details={"original_type": type(exc).__name__, "traceback": traceback.format_exc()}
    )
