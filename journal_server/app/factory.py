"""
FastAPI application factory for the journal realtime server.

This module handles app creation, middleware configuration, exception
handlers and router registration.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..api.internal import internal_router
from ..api.real_time import create_realtime_router
from ..api.system import system_router
from ..config import get_config
from ..config.models import AppConfig
from ..container import RealtimeContainer
from ..error_types import create_standard_error_response
from ..exceptions import JournalServerError
from ..structured_logging.enhanced_logging_config import get_logger
from .lifespan import lifespan

logger = get_logger(__name__)


async def journal_exception_handler(request: Request, exc: JournalServerError) -> JSONResponse:
    """Render a JournalServerError as the standard error body."""
    if not exc.context.request_id:
        exc.context.request_id = str(request.url)

    logger.warning(
        "Request failed",
        error_type=exc.error_type.value,
        message=exc.message,
        path=str(request.url),
        method=request.method,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=create_standard_error_response(exc.error_type, exc.message, exc.user_friendly, exc.details),
    )


def create_app(config: AppConfig | None = None, *, container: RealtimeContainer | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application config, loaded from the environment when omitted
        container: Pre-built realtime container, used as-is by the lifespan

    Returns:
        FastAPI: The configured application
    """
    config = config or get_config()
    app = FastAPI(
        title="Journal Realtime Server",
        description="Real-time presence, journal chat and couple game fan-out",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    if container is not None:
        app.state.container = container

    cors = config.cors
    logger.info(
        "CORS configuration",
        allow_origins=cors.allow_origins,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
        allow_credentials=cors.allow_credentials,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.allow_origins,
        allow_credentials=cors.allow_credentials,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
    )

    app.add_exception_handler(JournalServerError, journal_exception_handler)

    app.include_router(system_router)
    app.include_router(create_realtime_router(config.realtime.ws_path))
    app.include_router(internal_router)

    return app
