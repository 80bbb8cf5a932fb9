"""Larasocket relay client.

A resilient asyncio client for the Larasocket publish/subscribe relay. It keeps
one logical session alive across physical reconnects, performs the relay's
link handshake, subscribes to channels once a connection id is known, and
exposes inbound messages and lifecycle events as multi-subscriber streams.

Example:
    >>> from larasocket import LarasocketClient
    >>>
    >>> async with LarasocketClient(token="my-token") as client:
    ...     client.messages.subscribe(lambda message: print(message))
    ...     await client.subscribe_to_channel("orders")
"""

__version__ = "0.3.0"

from larasocket.client import LarasocketClient
from larasocket.errors import (
    BadInputError,
    ClientDisposedError,
    InvalidTransitionError,
    LarasocketConnectionError,
    LarasocketError,
    LarasocketProtocolError,
    StopFailedError,
)
from larasocket.models import (
    BroadcastErrors,
    BroadcastMessage,
    BroadcastResult,
    ConnectionState,
    DisconnectionInfo,
    DisconnectionType,
    MessageType,
    ReconnectionInfo,
    ReconnectionType,
    ResponseMessage,
)
from larasocket.transport import ConnectionManager, ReconnectConfig

__all__ = [
    "__version__",
    # Client
    "ConnectionManager",
    "LarasocketClient",
    "ReconnectConfig",
    # Models
    "BroadcastErrors",
    "BroadcastMessage",
    "BroadcastResult",
    "ConnectionState",
    "DisconnectionInfo",
    "DisconnectionType",
    "MessageType",
    "ReconnectionInfo",
    "ReconnectionType",
    "ResponseMessage",
    # Errors
    "BadInputError",
    "ClientDisposedError",
    "InvalidTransitionError",
    "LarasocketConnectionError",
    "LarasocketError",
    "LarasocketProtocolError",
    "StopFailedError",
]
