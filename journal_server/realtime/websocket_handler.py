"""
WebSocket connection handling for the journal realtime server.

One call to handle_websocket_connection runs for the lifetime of a socket:
handshake authentication, registration, the welcome event, the receive loop,
and removal from the registry however the loop ends.
"""

import asyncio
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from ..exceptions import ErrorContext, RateLimitError
from ..structured_logging.enhanced_logging_config import (
    bind_connection_context,
    clear_connection_context,
    get_logger,
)
from .envelope import build_event
from .exceptions import MalformedPayloadError, RealtimeAuthError

if TYPE_CHECKING:
    from ..container import RealtimeContainer

logger = get_logger(__name__)

# WebSocket close codes
CLOSE_CODE_GOING_AWAY = 1001
CLOSE_CODE_POLICY_VIOLATION = 1008

BEARER_SUBPROTOCOL = "bearer"


def _offered_subprotocols(websocket: WebSocket) -> list[str]:
    header = websocket.headers.get("sec-websocket-protocol")
    if not header:
        return []
    return [part.strip() for part in header.split(",") if part.strip()]


def extract_handshake_token(websocket: WebSocket, allow_query_token: bool = True) -> tuple[str | None, str | None]:
    """
    Find a bearer token offered during the handshake.

    A `bearer, <token>` subprotocol pair wins over the `?token=` query
    parameter.

    Returns:
        (token, token_source) where token_source is "subprotocol", "query" or None
    """
    offered = _offered_subprotocols(websocket)
    lowered = [part.lower() for part in offered]
    if BEARER_SUBPROTOCOL in lowered:
        index = lowered.index(BEARER_SUBPROTOCOL)
        if index + 1 < len(offered):
            return offered[index + 1], "subprotocol"

    if allow_query_token:
        token = websocket.query_params.get("token")
        if token:
            return token, "query"
    return None, None


def select_subprotocol(websocket: WebSocket, protocol: str) -> str | None:
    """Pick the subprotocol to confirm: the app protocol if offered, else the bearer marker."""
    offered = _offered_subprotocols(websocket)
    if protocol in offered:
        return protocol
    if BEARER_SUBPROTOCOL in [part.lower() for part in offered]:
        return next(part for part in offered if part.lower() == BEARER_SUBPROTOCOL)
    return None


async def handle_websocket_connection(websocket: WebSocket, container: "RealtimeContainer") -> None:
    """
    Serve one WebSocket connection until it closes.

    A handshake token that fails verification rejects the upgrade with close
    code 1008. Without a handshake token the connection is accepted
    unauthenticated and may send an `auth` event later.
    """
    realtime_config = container.config.realtime
    token, token_source = extract_handshake_token(websocket, realtime_config.allow_query_token)

    identity = None
    if token is not None:
        try:
            identity = container.auth_binder.authenticate(token)
        except RealtimeAuthError as e:
            logger.warning("Handshake authentication rejected", token_source=token_source, reason=e.message)
            await websocket.close(code=CLOSE_CODE_POLICY_VIOLATION, reason=e.user_friendly)
            return

    await websocket.accept(subprotocol=select_subprotocol(websocket, realtime_config.protocol))
    connection_id = await container.registry.register(websocket)
    bind_connection_context(connection_id)

    try:
        user_id = None
        if identity is not None:
            # Verified before accept; binding must not re-check expiry
            await container.auth_binder.bind_identity(connection_id, identity)
            user_id = identity.user_id
            bind_connection_context(connection_id, user_id=user_id)

        await container.broadcaster.send_to_connection(
            connection_id,
            build_event(
                "connected",
                message="Connected to real-time chat service",
                connectionId=connection_id,
                userId=user_id,
                authenticated=user_id is not None,
            ),
        )
        await _handle_websocket_message_loop(websocket, connection_id, container)
    finally:
        await container.registry.remove(connection_id)
        container.rate_limiter.remove_connection_message_data(connection_id)
        clear_connection_context()


async def _receive_frame(websocket: WebSocket, idle_timeout: float) -> str | None:
    """
    Wait for the next data frame.

    Returns None when the peer disconnected.

    Raises:
        TimeoutError: If nothing arrives within idle_timeout
    """
    message = await asyncio.wait_for(websocket.receive(), timeout=idle_timeout)
    if message["type"] == "websocket.disconnect":
        logger.info("WebSocket disconnected", code=message.get("code"))
        return None
    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes") or b""
    return data.decode("utf-8", errors="replace")


async def _handle_websocket_message_loop(
    websocket: WebSocket, connection_id: str, container: "RealtimeContainer"
) -> None:
    """Handle the main receive loop."""
    idle_timeout = container.config.realtime.idle_timeout_seconds

    while True:
        try:
            data = await _receive_frame(websocket, idle_timeout)
        except TimeoutError:
            logger.info("Closing idle connection", idle_timeout=idle_timeout)
            record = container.registry.get(connection_id)
            if record is not None:
                await container.sender.close_connection(record, CLOSE_CODE_GOING_AWAY, "Idle timeout")
            return
        except WebSocketDisconnect as e:
            logger.info("WebSocket disconnected", code=e.code)
            return
        except RuntimeError as e:
            logger.warning("WebSocket connection lost", error=str(e))
            return

        if data is None:
            return

        record = container.registry.get(connection_id)
        if record is None:
            # Dropped after a failed delivery
            return

        if not container.rate_limiter.check_message_rate_limit(connection_id):
            await container.dispatcher.send_error(
                connection_id,
                RateLimitError(
                    "Message rate limit exceeded",
                    ErrorContext(connection_id=connection_id, user_id=record.user_id),
                    retry_after=container.rate_limiter.retry_after(connection_id),
                    user_friendly="Too many messages. Please slow down.",
                ),
            )
            continue

        try:
            message = container.validator.parse_and_validate(data, connection_id)
        except MalformedPayloadError as e:
            await container.dispatcher.send_error(connection_id, e)
            continue

        await container.dispatcher.handle_message(connection_id, message)
