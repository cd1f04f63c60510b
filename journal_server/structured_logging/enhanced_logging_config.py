"""
Enhanced structlog-based logging configuration for the journal realtime server.

This module is the single entry point for logging: it configures structlog on
top of the standard library so uvicorn, Starlette and application loggers
share one pipeline (context merge, credential redaction, timestamps,
JSON or console rendering).

CORRECT USAGE:
    from ..structured_logging.enhanced_logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Connection registered", connection_id=connection_id)
"""

import json
import logging
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

from .logging_context import bind_connection_context, clear_connection_context, get_current_context
from .logging_processors import add_correlation_id, sanitize_sensitive_data, stringify_uuids

# Re-export context helpers so callers only need this module
bind_connection_context = bind_connection_context
clear_connection_context = clear_connection_context
get_current_context = get_current_context

logger = structlog.get_logger(__name__)


class _LoggingState:
    """State container for logging initialization to avoid global statements."""

    initialized: bool = False
    signature: str | None = None


_logging_state = _LoggingState()


def configure_enhanced_structlog(
    environment: str = "development",
    log_level: str = "INFO",
    log_format: str = "console",
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        environment: Environment name, bound onto every entry
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" for machine-readable output, anything else for console
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    def add_environment(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("environment", environment)
        return event_dict

    structlog.configure(
        processors=[
            sanitize_sensitive_data,
            merge_contextvars,
            add_correlation_id,
            add_environment,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            stringify_uuids,
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_enhanced_logging(config: dict[str, Any], *, force_reconfigure: bool = False) -> None:
    """
    Set up logging from the `logging` section of the server configuration.

    Repeated calls with an unchanged configuration are ignored unless
    `force_reconfigure` is set.

    Args:
        config: Configuration dictionary (see AppConfig.to_legacy_dict)
        force_reconfigure: Tear down and reconfigure even if already initialized
    """
    config_signature = json.dumps(config, sort_keys=True, default=str)
    if _logging_state.initialized and not force_reconfigure and config_signature == _logging_state.signature:
        return

    logging_config = config.get("logging", {})
    environment = logging_config.get("environment", "development")
    log_level = logging_config.get("level", "INFO")
    log_format = logging_config.get("format", "console")

    if logging_config.get("disable_logging", False):
        log_level = "CRITICAL"

    configure_enhanced_structlog(environment, log_level, log_format)
    _configure_uvicorn_logging()

    get_logger("journal_server.structured_logging").info(
        "Logging system initialized",
        environment=environment,
        log_level=log_level,
        log_format=log_format,
    )

    _logging_state.initialized = True
    _logging_state.signature = config_signature


def _configure_uvicorn_logging() -> None:
    """Route uvicorn's loggers through the root handler configured above."""
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True


def get_logger(name: str) -> Any:
    """
    Get a structlog logger with the specified name.

    This is the public API for obtaining loggers; application code should not
    call structlog.get_logger() directly.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
