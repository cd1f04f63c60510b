"""
Structured logging package for the journal realtime server.

Import loggers explicitly via
'from journal_server.structured_logging.enhanced_logging_config import get_logger'.

The package is not called 'logging' so it never shadows the standard library module.
"""

__all__: list[str] = []
