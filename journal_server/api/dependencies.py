"""Request dependencies shared by the HTTP routers."""

import hmac

from fastapi import Depends, Header, HTTPException, Request

from ..container import RealtimeContainer


def get_container(request: Request) -> RealtimeContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Service temporarily unavailable")
    return container


def require_internal_token(
    x_internal_token: str | None = Header(default=None),
    container: RealtimeContainer = Depends(get_container),
) -> None:
    """Guard for the internal publish endpoints, keyed on the X-Internal-Token header."""
    expected = container.config.security.internal_token
    if not expected:
        raise HTTPException(status_code=503, detail="Internal API is not configured")
    if x_internal_token is None or not hmac.compare_digest(x_internal_token, expected):
        raise HTTPException(status_code=403, detail="Invalid internal token")
