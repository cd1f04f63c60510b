"""
Token verification and identity binding for realtime connections.

Both the handshake token and the deferred `auth` event go through
AuthBinder.bind, so a connection is authenticated the same way regardless of
how its credential arrived.
"""

from typing import Any

from ..auth_utils import TokenDecodeError, decode_access_token
from ..config.models import SecurityConfig
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import AuthenticatedIdentity
from .connection_registry import ConnectionRegistry
from .exceptions import InvalidTokenError, TokenExpiredError
from .subscription_manager import SubscriptionManager
from .topics import user_topic

logger = get_logger(__name__)

USER_ID_CLAIMS = ("id", "sub")
DISPLAY_NAME_CLAIMS = ("name", "username", "email")


def _claim_as_str(payload: dict[str, Any], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = payload.get(name)
        if isinstance(value, bool):
            continue
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, int):
            return str(value)
    return None


class AuthBinder:
    """Verifies bearer tokens and binds the resulting identity to a connection."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        subscriptions: SubscriptionManager,
        secret: str,
        algorithm: str = "HS256",
        audience: str | None = None,
    ) -> None:
        self._registry = registry
        self._subscriptions = subscriptions
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    @classmethod
    def from_config(
        cls, config: SecurityConfig, registry: ConnectionRegistry, subscriptions: SubscriptionManager
    ) -> "AuthBinder":
        return cls(registry, subscriptions, config.secret, config.algorithm, config.audience)

    def authenticate(self, raw_credential: Any) -> AuthenticatedIdentity:
        """
        Verify a bearer token and extract the identity it carries.

        Raises:
            InvalidTokenError: Malformed token, bad signature or no user id claim
            TokenExpiredError: Token expired
        """
        if not isinstance(raw_credential, str) or not raw_credential.strip():
            raise InvalidTokenError("Missing token")

        token = raw_credential.strip()
        if token.lower().startswith("bearer "):
            token = token[7:].strip()

        try:
            payload = decode_access_token(token, self._secret, self._algorithm, self._audience)
        except TokenDecodeError as e:
            if e.expired:
                raise TokenExpiredError() from e
            raise InvalidTokenError(f"Token verification failed: {e.reason}") from e

        user_id = _claim_as_str(payload, USER_ID_CLAIMS)
        if user_id is None:
            raise InvalidTokenError("Token has no user id claim")

        return AuthenticatedIdentity(user_id=user_id, display_name=_claim_as_str(payload, DISPLAY_NAME_CLAIMS))

    async def bind(self, connection_id: str, raw_credential: Any) -> AuthenticatedIdentity:
        """
        Authenticate a credential and bind it to a connection.

        On success the connection is also subscribed to its personal channel.

        Raises:
            InvalidTokenError, TokenExpiredError: Credential rejected
            AlreadyBoundError: Connection already bound to another user
            ConnectionNotFoundError: Connection is not registered
        """
        identity = self.authenticate(raw_credential)
        await self.bind_identity(connection_id, identity)
        return identity

    async def bind_identity(self, connection_id: str, identity: AuthenticatedIdentity) -> bool:
        """
        Bind an already verified identity and subscribe its personal channel.

        Returns:
            bool: True if the identity was newly bound
        """
        newly_bound = await self._registry.bind_identity(connection_id, identity)
        await self._subscriptions.subscribe(connection_id, user_topic(identity.user_id))

        if newly_bound:
            logger.info("Connection authenticated", connection_id=connection_id, user_id=identity.user_id)
        return newly_bound
