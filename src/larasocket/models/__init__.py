"""Larasocket client models.

Wire models (link, subscribe, handshake, broadcast) are pydantic models;
runtime values (messages, envelopes, lifecycle events) are dataclasses.
"""

from larasocket.models.broadcast import BroadcastErrors, BroadcastMessage, BroadcastResult
from larasocket.models.enums import (
    ConnectionState,
    DisconnectionType,
    MessageType,
    ReconnectionType,
)
from larasocket.models.events import DisconnectionInfo, ReconnectionInfo
from larasocket.models.messages import (
    HandshakeResponse,
    LinkMessage,
    OutboundEnvelope,
    ResponseMessage,
    SubscribeMessage,
    parse_handshake_response,
)

__all__ = [
    "BroadcastErrors",
    "BroadcastMessage",
    "BroadcastResult",
    "ConnectionState",
    "DisconnectionInfo",
    "DisconnectionType",
    "HandshakeResponse",
    "LinkMessage",
    "MessageType",
    "OutboundEnvelope",
    "ReconnectionInfo",
    "ReconnectionType",
    "ResponseMessage",
    "SubscribeMessage",
    "parse_handshake_response",
]
