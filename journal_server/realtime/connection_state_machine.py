"""
Per-connection lifecycle state machine.

A WebSocket connection starts Connected, becomes Authenticated once a token
is bound, and ends Closed. Closed is terminal; nothing leaves it.
"""

from statemachine import State, StateMachine

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class ConnectionLifecycle(StateMachine):
    """
    State machine for a single client connection.

    Transitions:
    - connected -> authenticated: authenticate
    - connected -> closed: close
    - authenticated -> closed: close
    """

    connected = State("Connected", initial=True)
    authenticated = State("Authenticated")
    closed = State("Closed", final=True)

    authenticate = connected.to(authenticated)
    close = connected.to(closed) | authenticated.to(closed)

    def __init__(self, connection_id: str):
        # Set before super().__init__() because on_enter_state runs for the initial state
        self.connection_id = connection_id
        super().__init__()

    def on_enter_state(self, state: State, event=None) -> None:
        if event is None or event == "__initial__":
            return
        logger.debug(
            "Connection state transition",
            connection_id=self.connection_id,
            trigger_event=str(event),
            to_state=state.id,
        )

    @property
    def state_id(self) -> str:
        return self.current_state.id

    @property
    def is_authenticated(self) -> bool:
        return self.current_state.id == "authenticated"

    @property
    def is_closed(self) -> bool:
        return self.current_state.id == "closed"
