"""Transport acquisition for the Larasocket relay.

A transport is one established duplex connection. The rest of the client only
talks to the ``Transport`` protocol defined here, so callers can substitute
their own ``TransportFactory`` (test doubles, proxies, custom TLS) without
touching the connection manager.

The default implementation wraps the ``websockets`` asyncio client. Each
received message is exposed fragment by fragment through
``recv_streaming()``; a received close frame becomes a ``Frame`` of type
CLOSE, and any other closure is raised as ``websockets.ConnectionClosed``.
"""

from __future__ import annotations

import ssl
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlencode

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from larasocket.models.constants import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_OPEN_TIMEOUT,
    DEFAULT_RELAY_HOST,
    WS_CLOSE_NORMAL,
)
from larasocket.models.enums import MessageType
from larasocket.observability import get_logger
from larasocket.utils.sanitization import sanitize_url

logger = get_logger(__name__)


def build_relay_url(token: str, client_uuid: str, host: str = DEFAULT_RELAY_HOST) -> str:
    """Return the relay address ``wss://<host>?token=<token>&uuid=<uuid>``.

    Example:
        >>> build_relay_url("abc", "42")
        'wss://ws.larasocket.com?token=abc&uuid=42'
    """
    return f"wss://{host}?{urlencode({'token': token, 'uuid': client_uuid})}"


@dataclass(frozen=True, slots=True)
class Frame:
    """One received chunk of a message.

    Attributes:
        message_type: TEXT, BINARY or CLOSE
        data: Raw bytes of this chunk (UTF-8 for text)
        end_of_message: True on the last chunk of a message
        close_code: Close code, only for CLOSE frames
        close_reason: Close reason, only for CLOSE frames
    """

    message_type: MessageType
    data: bytes = b""
    end_of_message: bool = True
    close_code: int | None = None
    close_reason: str | None = None


@runtime_checkable
class Transport(Protocol):
    """An established duplex connection with framed send/receive primitives."""

    @property
    def is_open(self) -> bool: ...

    async def receive(self) -> Frame:
        """Return the next frame chunk; raise when the connection is broken."""
        ...

    async def send(self, data: str | bytes) -> None:
        """Write one complete message (str as text, bytes as binary)."""
        ...

    async def close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None:
        """Perform the closing handshake."""
        ...

    def abort(self) -> None:
        """Drop the connection immediately without a closing handshake."""
        ...


@runtime_checkable
class TransportFactory(Protocol):
    """Produces one connected transport per call, or raises.

    Cancelling the awaiting task aborts the attempt.
    """

    async def connect(self, url: str) -> Transport: ...


class WebSocketsTransport:
    """``Transport`` over a ``websockets`` asyncio ``ClientConnection``."""

    def __init__(self, connection: ClientConnection) -> None:
        self._connection = connection
        self._fragments: AsyncIterator[str | bytes] | None = None
        self._lookahead: str | bytes | None = None

    @property
    def connection(self) -> ClientConnection:
        return self._connection

    @property
    def is_open(self) -> bool:
        return self._connection.state is State.OPEN

    async def receive(self) -> Frame:
        try:
            if self._fragments is None:
                self._fragments = aiter(self._connection.recv_streaming())
                self._lookahead = await anext(self._fragments)
            fragment = self._lookahead
            try:
                self._lookahead = await anext(self._fragments)
                end_of_message = False
            except StopAsyncIteration:
                self._fragments = None
                self._lookahead = None
                end_of_message = True
        except ConnectionClosed as exc:
            self._fragments = None
            self._lookahead = None
            if exc.rcvd is None:
                raise
            return Frame(
                message_type=MessageType.CLOSE,
                close_code=exc.rcvd.code,
                close_reason=exc.rcvd.reason,
            )
        if isinstance(fragment, str):
            return Frame(MessageType.TEXT, fragment.encode("utf-8"), end_of_message)
        return Frame(MessageType.BINARY, bytes(fragment or b""), end_of_message)

    async def send(self, data: str | bytes) -> None:
        await self._connection.send(data)

    async def close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None:
        await self._connection.close(code=code, reason=reason)

    def abort(self) -> None:
        transport = self._connection.transport
        if transport is not None:
            transport.abort()


class WebSocketTransportFactory:
    """Default factory: opens a ``websockets`` client connection.

    Keepalive pings are left to the library; the client's own health monitor
    decides when a silent connection must be replaced.
    """

    def __init__(
        self,
        open_timeout: float | None = DEFAULT_OPEN_TIMEOUT,
        close_timeout: float | None = DEFAULT_CLOSE_TIMEOUT,
        ping_interval: float | None = 20.0,
        ping_timeout: float | None = 20.0,
        max_size: int | None = 2**20,
        ssl_context: ssl.SSLContext | None = None,
        additional_headers: dict[str, str] | None = None,
    ) -> None:
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._max_size = max_size
        self._ssl_context = ssl_context
        self._additional_headers = additional_headers

    async def connect(self, url: str) -> Transport:
        connect_kwargs: dict[str, Any] = {
            "open_timeout": self._open_timeout,
            "close_timeout": self._close_timeout,
            "ping_interval": self._ping_interval,
            "ping_timeout": self._ping_timeout,
            "max_size": self._max_size,
        }
        if self._ssl_context is not None:
            connect_kwargs["ssl"] = self._ssl_context
        if self._additional_headers:
            connect_kwargs["additional_headers"] = self._additional_headers
        logger.debug("larasocket.transport.connecting", url=sanitize_url(url))
        connection = await connect(url, **connect_kwargs)
        logger.debug("larasocket.transport.connected", url=sanitize_url(url))
        return WebSocketsTransport(connection)


__all__ = [
    "Frame",
    "Transport",
    "TransportFactory",
    "WebSocketTransportFactory",
    "WebSocketsTransport",
    "build_relay_url",
]
