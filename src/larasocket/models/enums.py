"""Enumerations for the Larasocket client.

This module defines all enum types used by the client to ensure
type safety and prevent magic strings.
"""

from enum import Enum


class ConnectionState(str, Enum):
    """Connection manager lifecycle states.

    DISPOSED is terminal: no transition leaves it.

    Example:
        >>> ConnectionState.DISPOSED.is_terminal()
        True
        >>> ConnectionState.STOPPED.is_terminal()
        False
    """

    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    RECONNECTING = "reconnecting"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DISPOSED = "disposed"

    @classmethod
    def started_states(cls) -> frozenset["ConnectionState"]:
        """Return the states in which the manager counts as started."""
        return frozenset({cls.STARTING, cls.RUNNING, cls.RECONNECTING})

    def is_terminal(self) -> bool:
        """Check if this state is terminal."""
        return self is ConnectionState.DISPOSED


class MessageType(str, Enum):
    """Frame and message kinds.

    CLOSE only appears on raw frames; decoded messages are TEXT or BINARY.
    """

    TEXT = "text"
    BINARY = "binary"
    CLOSE = "close"


class DisconnectionType(str, Enum):
    """Why a connection ended.

    EXIT: the client was disposed
    BY_USER: stop() or a manual reconnect
    BY_SERVER: the relay sent a close frame
    ERROR: a connection attempt failed
    LOST: the stream broke or went silent
    """

    EXIT = "exit"
    BY_USER = "by_user"
    BY_SERVER = "by_server"
    ERROR = "error"
    LOST = "lost"


class ReconnectionType(str, Enum):
    """Why a (re)connection happened.

    Each reconnection cause has exactly one matching disconnection cause,
    see ``disconnection_type``.

    Example:
        >>> ReconnectionType.MANUAL.disconnection_type
        <DisconnectionType.BY_USER: 'by_user'>
    """

    INITIAL = "initial"
    LOST = "lost"
    ERROR = "error"
    MANUAL = "manual"

    @property
    def disconnection_type(self) -> DisconnectionType:
        """Return the disconnection cause announced before this reconnection."""
        return _DISCONNECTION_FOR_RECONNECTION[self]


_DISCONNECTION_FOR_RECONNECTION: dict[ReconnectionType, DisconnectionType] = {
    ReconnectionType.INITIAL: DisconnectionType.EXIT,
    ReconnectionType.LOST: DisconnectionType.LOST,
    ReconnectionType.ERROR: DisconnectionType.ERROR,
    ReconnectionType.MANUAL: DisconnectionType.BY_USER,
}
