"""
Inbound event dispatcher.

Routes each inbound event through a table keyed by event type instead of an
if/elif chain. Every failure is turned into an `error` event sent to the
originating connection only; the connection stays open.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..error_types import ErrorType
from ..exceptions import ErrorContext, JournalServerError, handle_exception
from ..structured_logging.enhanced_logging_config import get_logger
from .envelope import build_error_event
from .exceptions import MalformedPayloadError, NotAuthenticatedError, UnknownEventError
from .handlers import DEFAULT_ROUTES, EventContext, EventRoute, RealtimeServices

logger = get_logger(__name__)


def split_envelope(message: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
    """
    Separate the event type from its fields.

    Fields may sit next to `type` or be nested under `data`; nested fields win.
    """
    event_type = message.get("type")
    fields = {key: value for key, value in message.items() if key not in ("type", "data")}
    nested = message.get("data")
    if isinstance(nested, dict):
        fields.update(nested)
    return event_type, fields


class EventDispatcher:
    """
    Dispatches inbound events to handlers.

    The per-connection lifecycle (connected, authenticated, closed) gates
    which routes may run: routes flagged requires_auth reject unauthenticated
    connections before the payload is even parsed.
    """

    def __init__(self, services: RealtimeServices, routes: list[EventRoute] | None = None) -> None:
        self.services = services
        self._routes: dict[str, EventRoute] = {}
        self.handled = 0
        self.rejected = 0
        for route in DEFAULT_ROUTES if routes is None else routes:
            self.register_route(route)

    def register_route(self, route: EventRoute) -> None:
        self._routes[route.event_type] = route
        logger.debug("Registered route for event type", event_type=route.event_type)

    def get_route(self, event_type: str) -> EventRoute | None:
        return self._routes.get(event_type)

    def get_supported_event_types(self) -> list[str]:
        return sorted(self._routes)

    async def handle_message(self, connection_id: str, message: dict[str, Any]) -> None:
        """Dispatch a decoded inbound envelope."""
        event_type, fields = split_envelope(message)
        await self.handle(connection_id, event_type, fields)

    async def handle(self, connection_id: str, event_type: Any, payload: dict[str, Any]) -> None:
        """
        Handle one inbound event.

        Args:
            connection_id: Originating connection
            event_type: Value of the envelope's `type` field
            payload: Event fields
        """
        try:
            await self._dispatch(connection_id, event_type, payload)
            self.handled += 1
        except JournalServerError as e:
            self.rejected += 1
            await self.send_error(connection_id, e)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one bad event must not kill the receive loop
            self.rejected += 1
            logger.error(
                "Unhandled error in event handler",
                connection_id=connection_id,
                event_type=event_type,
                error=str(e),
                exc_info=True,
            )
            error = handle_exception(e, ErrorContext(connection_id=connection_id, event_type=str(event_type)))
            error.error_type = ErrorType.MESSAGE_PROCESSING_ERROR
            await self.send_error(connection_id, error)

    async def send_error(self, connection_id: str, error: JournalServerError) -> bool:
        return await self.services.broadcaster.send_to_connection(connection_id, build_error_event(error))

    async def _dispatch(self, connection_id: str, event_type: Any, payload: dict[str, Any]) -> None:
        context = ErrorContext(connection_id=connection_id, event_type=str(event_type))

        if not isinstance(event_type, str) or not event_type:
            raise MalformedPayloadError(
                "Message has no type",
                context,
                field="type",
                error_type=ErrorType.MISSING_REQUIRED_FIELD,
            )

        route = self._routes.get(event_type)
        if route is None:
            raise UnknownEventError(event_type, context)

        record = self.services.registry.lookup(connection_id)
        context.user_id = record.user_id

        if route.requires_auth and not record.is_authenticated:
            raise NotAuthenticatedError(f"{event_type} requires authentication", context)

        try:
            model = route.payload_model.model_validate(payload)
        except PydanticValidationError as e:
            raise MalformedPayloadError(
                f"Invalid {event_type} payload",
                context,
                details={
                    "errors": [
                        {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]} for err in e.errors()
                    ]
                },
            ) from e

        record.touch()
        logger.debug("Dispatching event", connection_id=connection_id, event_type=event_type, user_id=record.user_id)
        await route.handler(EventContext(connection_id, record, self.services, event_type), model)

    def get_stats(self) -> dict[str, Any]:
        return {
            "events_handled": self.handled,
            "events_rejected": self.rejected,
            "supported_event_types": self.get_supported_event_types(),
        }
