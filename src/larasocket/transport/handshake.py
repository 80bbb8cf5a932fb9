"""Application-level handshake and channel subscription.

Right after a transport connects the client sends a link request. The relay
answers with ``{"connection_id": "..."}``; from then on a subscribe request
for the desired channel can be sent. A subscription requested earlier waits
for that answer instead of being dropped, and is re-sent automatically after
every reconnect.

The desired channel is held per handshake instance, so two clients in the
same process never share a subscription target.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from larasocket.errors import ClientDisposedError, LarasocketProtocolError
from larasocket.models.messages import (
    LinkMessage,
    OutboundEnvelope,
    ResponseMessage,
    SubscribeMessage,
    parse_handshake_response,
)
from larasocket.observability import get_logger, is_debug_mode, sanitize_for_logging

logger = get_logger(__name__)


class ProtocolHandshake:
    """Tracks the session id and the pending channel subscription.

    Args:
        token: Relay API token
        client_uuid: Client UUID sent with the link request
        enqueue: Puts a text envelope on the manager's text queue
    """

    def __init__(
        self,
        token: str,
        client_uuid: str,
        enqueue: Callable[[OutboundEnvelope], None],
    ) -> None:
        self._token = token
        self._client_uuid = client_uuid
        self._enqueue = enqueue
        self._channel: str | None = None
        self._connection_id: str | None = None
        self._connected = asyncio.Event()
        self._closed = False

    @property
    def connection_id(self) -> str | None:
        return self._connection_id

    @property
    def channel(self) -> str | None:
        return self._channel

    def start(self) -> None:
        """Send the link request for a freshly connected transport."""
        link = LinkMessage(token=self._token, uuid=self._client_uuid)
        self._enqueue(OutboundEnvelope.from_payload(link.model_dump_json()))
        logger.debug("larasocket.handshake.link_sent", payload=_loggable(link.model_dump()))

    def inspect(self, message: ResponseMessage) -> bool:
        """Check an inbound message for the handshake response.

        Returns:
            True if the message carried the session id
        """
        if message.text is None:
            return False
        response = parse_handshake_response(message.text)
        if response is None:
            return False

        self._connection_id = response.connection_id
        self._connected.set()
        logger.info("larasocket.handshake.completed", connection_id=response.connection_id)
        if self._channel is not None:
            self._send_subscribe(self._channel, response.connection_id)
        return True

    async def subscribe(self, channel: str, timeout: float | None = None) -> None:
        """Subscribe to ``channel`` now, or once the handshake completes.

        Only the most recent channel is kept. When the session id is not yet
        known the subscribe request is sent by ``inspect``, so concurrent
        callers never produce more than one request per handshake.

        Raises:
            LarasocketProtocolError: If ``timeout`` expires first
            ClientDisposedError: If the client is disposed while waiting
        """
        if self._closed:
            raise ClientDisposedError("subscribe_to_channel")
        self._channel = channel
        if self._connection_id is not None:
            self._send_subscribe(channel, self._connection_id)
            return

        logger.debug("larasocket.handshake.subscribe_deferred", channel=channel)
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError as exc:
            raise LarasocketProtocolError(
                f"No connection id received within {timeout}s",
                details={"channel": channel, "timeout": timeout},
                cause=exc,
            ) from exc
        if self._closed:
            raise ClientDisposedError("subscribe_to_channel")

    def reset(self) -> None:
        """Forget the session id when the transport goes away."""
        self._connection_id = None
        self._connected.clear()

    def close(self) -> None:
        """Release pending subscribers; further subscriptions are rejected."""
        self._closed = True
        self._connected.set()

    def _send_subscribe(self, channel: str, connection_id: str) -> None:
        request = SubscribeMessage(
            channel=channel,
            connection_id=connection_id,
            token=self._token,
        )
        self._enqueue(OutboundEnvelope.from_payload(request.model_dump_json()))
        logger.info("larasocket.handshake.subscribe_sent", payload=_loggable(request.model_dump()))


def _loggable(payload: dict[str, Any]) -> dict[str, Any]:
    return payload if is_debug_mode() else sanitize_for_logging(payload)


__all__ = ["ProtocolHandshake"]
