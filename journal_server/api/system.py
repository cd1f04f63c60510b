"""Service discovery and health endpoints."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends

from ..container import RealtimeContainer
from .dependencies import get_container

system_router = APIRouter(tags=["system"])


@system_router.get("/ws-info")
async def get_ws_info(container: RealtimeContainer = Depends(get_container)) -> dict[str, Any]:
    """Tell clients where the WebSocket lives and which subprotocol it speaks."""
    realtime = container.config.realtime
    return {
        "websocket": {
            "path": realtime.ws_path,
            "protocols": [realtime.protocol],
            "description": "WebSocket endpoint for real-time journal chat",
        }
    }


@system_router.get("/health")
async def get_health(container: RealtimeContainer = Depends(get_container)) -> dict[str, Any]:
    return {
        "status": "OK",
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime": container.uptime(),
        "environment": container.config.logging.environment,
        "connections": container.registry.connection_count(),
    }
