"""
Real-time communication API endpoints.

This module exposes the WebSocket endpoint and the realtime statistics view.
"""

from typing import Any

from fastapi import APIRouter, Depends, WebSocket

from ..container import RealtimeContainer
from ..realtime.websocket_handler import handle_websocket_connection
from ..structured_logging.enhanced_logging_config import get_logger
from .dependencies import get_container

logger = get_logger(__name__)

# WebSocket close code: try again later
CLOSE_CODE_TRY_AGAIN_LATER = 1013


async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for journal chat, presence and the couple game."""
    container = getattr(websocket.app.state, "container", None)
    if container is None:
        await websocket.close(code=CLOSE_CODE_TRY_AGAIN_LATER)
        return

    try:
        await handle_websocket_connection(websocket, container)
    except Exception as e:
        logger.error("Error in WebSocket endpoint", error=str(e), exc_info=True)
        raise


async def get_realtime_stats(container: RealtimeContainer = Depends(get_container)) -> dict[str, Any]:
    """Connection, topic and delivery statistics."""
    return container.get_stats()


def create_realtime_router(ws_path: str) -> APIRouter:
    """Build the realtime router with the WebSocket mounted at ws_path."""
    router = APIRouter(tags=["realtime"])
    router.add_api_websocket_route(ws_path, websocket_endpoint)
    router.add_api_route("/realtime/stats", get_realtime_stats, methods=["GET"])
    return router
