"""Message models for the Larasocket relay protocol.

Inbound frames are decoded into ``ResponseMessage`` values. Outbound work is
carried by ``OutboundEnvelope`` until a send queue writes it to the transport.
The link/subscribe requests and the handshake response are pydantic models
that define the relay's JSON wire format.

Wire format:
- Link (sent right after connect): {"action":"link","token":...,"uuid":...}
- Subscribe: {"action":"subscribe","channel":...,"connection_id":...,"token":...}
- Handshake response (inbound): {"connection_id": "..."}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import Field, ValidationError

from larasocket.models.base import LarasocketBaseModel, LarasocketInboundModel
from larasocket.models.constants import ACTION_LINK, ACTION_SUBSCRIBE
from larasocket.models.enums import MessageType


@dataclass(frozen=True, slots=True)
class ResponseMessage:
    """A complete message received from the relay, either text or binary.

    Attributes:
        message_type: TEXT or BINARY
        text: Decoded text (only for TEXT messages)
        binary: Raw bytes (only for BINARY messages)

    Example:
        >>> str(ResponseMessage.text_message('{"event":"x"}'))
        '{"event":"x"}'
        >>> str(ResponseMessage.binary_message(b"abc"))
        'Type binary, length: 3'
    """

    message_type: MessageType
    text: str | None = None
    binary: bytes | None = None

    @classmethod
    def text_message(cls, data: str) -> ResponseMessage:
        return cls(message_type=MessageType.TEXT, text=data)

    @classmethod
    def binary_message(cls, data: bytes) -> ResponseMessage:
        return cls(message_type=MessageType.BINARY, binary=data)

    def __str__(self) -> str:
        if self.message_type is MessageType.TEXT:
            return self.text or ""
        return f"Type binary, length: {len(self.binary) if self.binary is not None else 0}"


@dataclass(frozen=True, slots=True)
class OutboundEnvelope:
    """A serialized payload waiting in a send queue.

    Attributes:
        kind: TEXT for str payloads, BINARY for bytes payloads
        payload: The data written to the transport as one message
        generation: Connection the envelope belongs to; None for user
            messages, which may go out on any connection
    """

    kind: MessageType
    payload: str | bytes
    generation: int | None = None

    @classmethod
    def from_payload(cls, payload: str | bytes) -> OutboundEnvelope:
        """Build an envelope whose kind matches the payload type."""
        if isinstance(payload, (bytes, bytearray, memoryview)):
            return cls(kind=MessageType.BINARY, payload=bytes(payload))
        return cls(kind=MessageType.TEXT, payload=payload)


class LinkMessage(LarasocketBaseModel):
    """Handshake request sent immediately after the transport connects."""

    action: Literal["link"] = ACTION_LINK
    token: str = Field(..., description="Relay API token")
    uuid: str = Field(..., description="Client UUID, also present in the connection URL")


class SubscribeMessage(LarasocketBaseModel):
    """Channel subscription request, valid once a connection id is known."""

    action: Literal["subscribe"] = ACTION_SUBSCRIBE
    channel: str = Field(..., min_length=1, description="Channel name")
    connection_id: str = Field(..., min_length=1, description="Session id from the handshake")
    token: str = Field(..., description="Relay API token")


class HandshakeResponse(LarasocketInboundModel):
    """Relay acknowledgement of the link request.

    Detection is structural: any JSON object carrying a non-empty string
    ``connection_id`` is a handshake response, whatever its formatting.
    """

    connection_id: str = Field(..., min_length=1)


def parse_handshake_response(text: str) -> HandshakeResponse | None:
    """Parse a handshake response, or return None for any other payload.

    Malformed JSON, non-object payloads and objects without a usable
    ``connection_id`` are not errors: they are simply not handshake messages.

    Example:
        >>> parse_handshake_response('{\\n    "connection_id": "abc"\\n}').connection_id
        'abc'
        >>> parse_handshake_response('{"event": "order.created"}') is None
        True
    """
    try:
        return HandshakeResponse.model_validate_json(text)
    except ValidationError:
        return None
