"""
JWT helpers for the realtime server.

The server only verifies tokens; the account service issues them. Token
creation exists for tests and local tooling.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60


class TokenDecodeError(Exception):
    """Raised when a token cannot be verified."""

    def __init__(self, reason: str, *, expired: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.expired = expired


def create_access_token(
    data: dict,
    secret_key: str,
    expires_delta: timedelta | None = None,
    algorithm: str = ALGORITHM,
) -> str:
    """Create a signed JWT access token; a negative expires_delta yields an already expired token."""
    logger.debug("Creating access token", expires_delta=str(expires_delta) if expires_delta else None)

    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta if expires_delta is not None else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})

    token = jwt.encode(to_encode, secret_key, algorithm=algorithm)
    assert isinstance(token, str)
    return token


def decode_access_token(
    token: str,
    secret_key: str,
    algorithm: str = ALGORITHM,
    audience: str | None = None,
) -> dict[str, Any]:
    """
    Decode and verify a JWT access token.

    Raises:
        TokenDecodeError: with expired=True when only the expiry check failed
    """
    options = {"verify_aud": audience is not None}
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm], audience=audience, options=options)
    except ExpiredSignatureError as e:
        logger.debug("JWT expired", error=str(e))
        raise TokenDecodeError("Token has expired", expired=True) from e
    except JWTError as e:
        logger.debug("JWT decode error", error=str(e))
        raise TokenDecodeError(str(e)) from e

    if not isinstance(payload, dict):
        raise TokenDecodeError("Token payload is not an object")
    return payload
