"""Application lifecycle management for the journal realtime server."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..container import RealtimeContainer
from ..structured_logging.enhanced_logging_config import get_logger, setup_enhanced_logging

logger = get_logger("journal_server.lifespan")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the realtime container on startup and tear it down on shutdown.

    A container already placed on app.state (tests inject one) is started and
    shut down but not replaced.
    """
    config = app.state.config
    setup_enhanced_logging(config.to_legacy_dict())

    container = getattr(app.state, "container", None)
    if container is None:
        container = RealtimeContainer(config)
        app.state.container = container

    await container.start()
    logger.info("Journal realtime server started", host=config.server.host, port=config.server.port)
    try:
        yield
    finally:
        logger.info("Shutting down journal realtime server")
        await container.shutdown()
