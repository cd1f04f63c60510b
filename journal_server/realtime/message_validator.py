"""
WebSocket frame validation for the journal realtime server.

Checks size, JSON shape, nesting depth and string lengths of inbound frames
before they reach the dispatcher.
"""

import json
from typing import Any

from ..config.models import RealtimeConfig
from ..error_types import ErrorMessages, ErrorType
from ..exceptions import ErrorContext
from ..structured_logging.enhanced_logging_config import get_logger
from .exceptions import MalformedPayloadError

logger = get_logger(__name__)


class WebSocketMessageValidator:
    """
    Validates inbound WebSocket frames.

    Implements:
    - Message size limits
    - JSON depth limits
    - String length limits
    """

    MAX_MESSAGE_SIZE = 10 * 1024
    MAX_JSON_DEPTH = 10
    MAX_JSON_STRING_LENGTH = 4000

    def __init__(
        self,
        max_message_size: int | None = None,
        max_json_depth: int | None = None,
        max_string_length: int | None = None,
    ):
        self.max_message_size = max_message_size or self.MAX_MESSAGE_SIZE
        self.max_json_depth = max_json_depth or self.MAX_JSON_DEPTH
        self.max_string_length = max_string_length or self.MAX_JSON_STRING_LENGTH

    @classmethod
    def from_config(cls, config: RealtimeConfig) -> "WebSocketMessageValidator":
        return cls(config.max_message_size, config.max_json_depth, config.max_string_length)

    def validate_size(self, data: str, context: ErrorContext | None = None) -> None:
        """
        Raises:
            MalformedPayloadError: If the frame exceeds the size limit
        """
        size = len(data.encode("utf-8"))
        if size > self.max_message_size:
            raise MalformedPayloadError(
                f"Message size {size} bytes exceeds maximum {self.max_message_size} bytes",
                context,
                error_type=ErrorType.MESSAGE_TOO_LARGE,
                user_friendly=ErrorMessages.MESSAGE_TOO_LARGE,
                details={"size": size, "max_size": self.max_message_size},
            )

    def validate_json_structure(self, message: dict[str, Any], context: ErrorContext | None = None) -> None:
        """
        Raises:
            MalformedPayloadError: If nesting or string lengths exceed limits
        """
        depth = self._calculate_depth(message)
        if depth > self.max_json_depth:
            raise MalformedPayloadError(
                f"JSON depth {depth} exceeds maximum {self.max_json_depth}",
                context,
                details={"depth": depth, "max_depth": self.max_json_depth},
            )

        self._validate_string_lengths(message, context)

    def _calculate_depth(self, obj: Any, current_depth: int = 0) -> int:
        if current_depth > self.max_json_depth:
            return current_depth

        if isinstance(obj, dict):
            if not obj:
                return current_depth
            return max(self._calculate_depth(v, current_depth + 1) for v in obj.values())
        if isinstance(obj, list):
            if not obj:
                return current_depth
            return max(self._calculate_depth(item, current_depth + 1) for item in obj)
        return current_depth

    def _validate_string_lengths(self, obj: Any, context: ErrorContext | None) -> None:
        if isinstance(obj, dict):
            for key, value in obj.items():
                if isinstance(key, str) and len(key) > self.max_string_length:
                    raise MalformedPayloadError(
                        f"String key length {len(key)} exceeds maximum {self.max_string_length}", context
                    )
                self._validate_string_lengths(value, context)
        elif isinstance(obj, list):
            for item in obj:
                self._validate_string_lengths(item, context)
        elif isinstance(obj, str) and len(obj) > self.max_string_length:
            raise MalformedPayloadError(
                f"String length {len(obj)} exceeds maximum {self.max_string_length}", context
            )

    def _scan_depth(self, data: str) -> int:
        """Bracket nesting depth of raw JSON text, stopping once past the limit."""
        depth = 0
        max_depth = 0
        in_string = False
        escaped = False
        for char in data:
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char in "[{":
                depth += 1
                if depth > max_depth:
                    max_depth = depth
                    # Containers add one level over the depth of their deepest value
                    if max_depth > self.max_json_depth + 1:
                        return max_depth
            elif char in "]}":
                depth -= 1
        return max_depth

    def parse_and_validate(self, data: str, connection_id: str) -> dict[str, Any]:
        """
        Parse and validate a complete inbound frame.

        Returns:
            dict: The decoded envelope

        Raises:
            MalformedPayloadError: If validation fails at any stage
        """
        context = ErrorContext(connection_id=connection_id)
        self.validate_size(data, context)

        raw_depth = self._scan_depth(data)
        if raw_depth > self.max_json_depth + 1:
            raise MalformedPayloadError(
                f"JSON nesting exceeds maximum depth {self.max_json_depth}",
                context,
                error_type=ErrorType.INVALID_FORMAT,
                details={"max_depth": self.max_json_depth},
            )

        try:
            message = json.loads(data)
        except (ValueError, RecursionError) as e:
            raise MalformedPayloadError(f"Invalid JSON: {e}", context, error_type=ErrorType.INVALID_FORMAT) from e

        if not isinstance(message, dict):
            raise MalformedPayloadError("Message must be a JSON object", context, error_type=ErrorType.INVALID_FORMAT)

        self.validate_json_structure(message, context)
        return message
