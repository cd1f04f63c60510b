"""
Pydantic-based configuration models for the journal realtime server.

Every section is a pydantic-settings BaseSettings model reading its own
environment prefix; AppConfig aggregates them.
"""

import json
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


def _parse_env_list(candidate: Any) -> list[str]:
    """Parse a value from the environment as a JSON list or CSV."""
    if candidate is None:
        return []
    if isinstance(candidate, list | tuple | set):
        return [str(item).strip() for item in candidate if str(item).strip()]
    s = str(candidate).strip()
    if not s:
        return []
    try:
        loaded = json.loads(s)
        if isinstance(loaded, list):
            return [str(item).strip() for item in loaded if str(item).strip()]
    except json.JSONDecodeError:
        pass
    return [item.strip() for item in s.split(",") if item.strip()]


class ServerConfig(BaseSettings):
    """Server network configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=3000, description="Server port")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            logger.error("Invalid server port", port=v, valid_range="1-65535")
            raise ValueError("Port must be between 1 and 65535")
        return v

    model_config = {"env_prefix": "SERVER_", "case_sensitive": False, "extra": "ignore"}


class SecurityConfig(BaseSettings):
    """Token verification and internal hook credentials."""

    secret: str = Field(..., description="Shared HS256 signing secret (required)")
    algorithm: str = Field(default="HS256", description="JWT signature algorithm")
    audience: str | None = Field(default=None, description="Expected `aud` claim, if tokens carry one")
    internal_token: str | None = Field(
        default=None, description="Shared secret for the internal publish endpoints; unset disables them"
    )

    @field_validator("secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """Reject an empty signing secret."""
        if not v.strip():
            logger.error("JWT secret validation failed - empty secret")
            raise ValueError("JWT secret cannot be empty")
        return v

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Only HMAC algorithms make sense with a shared secret."""
        v_upper = v.upper()
        valid_algorithms = ["HS256", "HS384", "HS512"]
        if v_upper not in valid_algorithms:
            raise ValueError(f"JWT algorithm must be one of {valid_algorithms}, got '{v}'")
        return v_upper

    model_config = {"env_prefix": "JWT_", "case_sensitive": False, "extra": "ignore"}


class RealtimeConfig(BaseSettings):
    """WebSocket endpoint, timing and inbound frame limits."""

    ws_path: str = Field(default="/ws", description="WebSocket endpoint path")
    protocol: str = Field(default="journal-chat", description="Subprotocol selected when offered by the client")
    idle_timeout_seconds: float = Field(default=120.0, description="Close connections silent for this long")
    send_timeout_seconds: float = Field(default=5.0, description="Upper bound on a single outbound write")
    spin_duration_ms: int = Field(default=3000, description="Delay between spin_started and spin_result")
    max_message_size: int = Field(default=10 * 1024, description="Maximum inbound frame size in bytes")
    max_json_depth: int = Field(default=10, description="Maximum nesting depth of inbound JSON")
    max_string_length: int = Field(default=4000, description="Maximum length of any inbound string value")
    messages_per_minute: int = Field(default=600, description="Inbound frames allowed per connection per minute")
    allow_query_token: bool = Field(default=True, description="Accept a handshake token from ?token=")

    @field_validator("ws_path")
    @classmethod
    def validate_ws_path(cls, v: str) -> str:
        """Validate the path is absolute."""
        if not v.startswith("/"):
            raise ValueError("WebSocket path must start with '/'")
        return v

    @field_validator("idle_timeout_seconds", "send_timeout_seconds")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v

    @field_validator("spin_duration_ms")
    @classmethod
    def validate_spin_duration(cls, v: int) -> int:
        """Validate spin duration is not negative."""
        if v < 0:
            raise ValueError("Spin duration cannot be negative")
        return v

    @field_validator("max_message_size", "max_json_depth", "max_string_length", "messages_per_minute")
    @classmethod
    def validate_limits(cls, v: int) -> int:
        """Validate limits are at least 1."""
        if v < 1:
            raise ValueError("Limits must be at least 1")
        return v

    model_config = {"env_prefix": "REALTIME_", "case_sensitive": False, "extra": "ignore"}


class PushConfig(BaseSettings):
    """Offline push delivery through the Expo push service."""

    enabled: bool = Field(default=False, description="Send Expo pushes to offline users")
    expo_url: str = Field(default="https://exp.host/--/api/v2/push/send", description="Expo push endpoint")
    request_timeout_seconds: float = Field(default=10.0, description="HTTP timeout for a push request")
    queue_size: int = Field(default=1000, description="Maximum pending offline notifications")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate the timeout is positive."""
        if v <= 0:
            raise ValueError("Push request timeout must be positive")
        return v

    @field_validator("queue_size")
    @classmethod
    def validate_queue_size(cls, v: int) -> int:
        """Validate the queue holds at least one item."""
        if v < 1:
            raise ValueError("Push queue size must be at least 1")
        return v

    model_config = {"env_prefix": "PUSH_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default="development", description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format")
    disable_logging: bool = Field(default=False, description="Disable all logging")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate logging environment."""
        valid_environments = ["development", "test", "staging", "production"]
        if v not in valid_environments:
            logger.error("Invalid logging environment", environment=v, valid_environments=valid_environments)
            raise ValueError(f"Environment must be one of {valid_environments}, got '{v}'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got '{v}'")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}, got '{v}'")
        return v

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}

    def to_legacy_dict(self) -> dict:
        """Return the dict shape consumed by setup_enhanced_logging."""
        return {
            "environment": self.environment,
            "level": self.level,
            "format": self.format,
            "disable_logging": self.disable_logging,
        }


class CORSConfig(BaseSettings):
    """CORS configuration for the HTTP endpoints."""

    allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    allow_methods: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    allow_headers: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    allow_credentials: bool = Field(default=False)

    @field_validator("allow_origins", "allow_methods", "allow_headers", mode="before")
    @classmethod
    def parse_list(cls, value: object) -> list[str]:
        """Accept JSON arrays or comma-separated strings."""
        return _parse_env_list(value)

    model_config = {"env_prefix": "CORS_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Access via get_config().
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)  # type: ignore[arg-type]
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}

    def to_legacy_dict(self) -> dict:
        """Flatten into the dict shape the logging setup reads."""
        return {
            "host": self.server.host,
            "port": self.server.port,
            "ws_path": self.realtime.ws_path,
            "logging": self.logging.to_legacy_dict(),
        }
