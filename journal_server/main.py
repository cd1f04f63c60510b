"""
Journal realtime server - main application entry point.

Run with `journal-realtime` or `uvicorn journal_server.main:app`.
"""

import uvicorn

from .app.factory import create_app
from .config import get_config
from .structured_logging.enhanced_logging_config import get_logger, setup_enhanced_logging

config = get_config()
setup_enhanced_logging(config.to_legacy_dict())

logger = get_logger(__name__)

app = create_app(config)


def main() -> None:
    """Serve the application with uvicorn."""
    logger.info("Starting journal realtime server", host=config.server.host, port=config.server.port)
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
