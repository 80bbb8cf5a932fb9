"""Transport layer for the Larasocket client.

This package contains the connection lifecycle and reconnection engine:
transport acquisition, frame reassembly, ordered send queues, the health
watchdog and the link/subscribe handshake, orchestrated by
``ConnectionManager``. ``BroadcastClient`` publishes over HTTP.

Public exports:
    ConnectionManager: Resilient session with the relay
    ReconnectConfig: Reconnection and health-check settings
    EventStream: Multi-subscriber publish feed
    Transport / TransportFactory / Frame: Pluggable transport contract
    WebSocketTransportFactory: Default websockets-based factory
    BroadcastClient: HTTP broadcast publisher
"""

from larasocket.transport.broadcast import BroadcastClient
from larasocket.transport.factory import (
    Frame,
    Transport,
    TransportFactory,
    WebSocketsTransport,
    WebSocketTransportFactory,
    build_relay_url,
)
from larasocket.transport.handshake import ProtocolHandshake
from larasocket.transport.health import HealthMonitor
from larasocket.transport.manager import ConnectionManager
from larasocket.transport.receiver import FrameReceiver
from larasocket.transport.reconnection import ReconnectConfig, ReconnectionController
from larasocket.transport.send_queue import SendQueue
from larasocket.transport.streams import EventStream

__all__ = [
    "BroadcastClient",
    "ConnectionManager",
    "EventStream",
    "Frame",
    "FrameReceiver",
    "HealthMonitor",
    "ProtocolHandshake",
    "ReconnectConfig",
    "ReconnectionController",
    "SendQueue",
    "Transport",
    "TransportFactory",
    "WebSocketTransportFactory",
    "WebSocketsTransport",
    "build_relay_url",
]
