"""Connection state machine.

This module defines the legal ConnectionState transitions of a connection
manager and validates every change against them.

Example:
    >>> from larasocket.models.enums import ConnectionState
    >>> can_transition(ConnectionState.NOT_STARTED, ConnectionState.STARTING)
    True
    >>> can_transition(ConnectionState.DISPOSED, ConnectionState.STARTING)
    False
"""

from larasocket.errors import InvalidTransitionError
from larasocket.models.enums import ConnectionState

__all__ = ["ConnectionState", "can_transition", "transition", "VALID_TRANSITIONS"]

# Every non-terminal state may be disposed
VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.NOT_STARTED: {ConnectionState.STARTING, ConnectionState.DISPOSED},
    ConnectionState.STARTING: {
        ConnectionState.RUNNING,
        ConnectionState.RECONNECTING,
        ConnectionState.STOPPING,
        ConnectionState.STOPPED,
        ConnectionState.DISPOSED,
    },
    ConnectionState.RUNNING: {
        ConnectionState.RECONNECTING,
        ConnectionState.STOPPING,
        ConnectionState.STOPPED,
        ConnectionState.DISPOSED,
    },
    ConnectionState.RECONNECTING: {
        ConnectionState.RUNNING,
        ConnectionState.STOPPING,
        ConnectionState.STOPPED,
        ConnectionState.DISPOSED,
    },
    ConnectionState.STOPPING: {ConnectionState.STOPPED, ConnectionState.DISPOSED},
    ConnectionState.STOPPED: {ConnectionState.STARTING, ConnectionState.DISPOSED},
    ConnectionState.DISPOSED: set(),  # Terminal state
}


def can_transition(from_state: ConnectionState, to_state: ConnectionState) -> bool:
    """Check if a transition from one state to another is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def transition(
    current: ConnectionState, new_state: ConnectionState, name: str | None = None
) -> ConnectionState:
    """Validate a state change and return the new state.

    Args:
        current: The manager's current state
        new_state: The target state
        name: Optional client name, included in the error details

    Returns:
        ``new_state`` when the transition is legal

    Raises:
        InvalidTransitionError: If the transition is not valid
    """
    if not can_transition(current, new_state):
        raise InvalidTransitionError(
            from_state=current.value,
            to_state=new_state.value,
            details={"name": name} if name else None,
        )
    return new_state
