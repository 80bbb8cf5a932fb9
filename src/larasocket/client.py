"""High-level Larasocket client.

``LarasocketClient`` is a ``ConnectionManager`` that can also publish to
channels through the relay's HTTP broadcast endpoint.

Example:
    >>> import asyncio
    >>> from larasocket import LarasocketClient
    >>>
    >>> async def main() -> None:
    ...     async with LarasocketClient("my-token", name="orders") as client:
    ...         client.messages.subscribe(print)
    ...         await client.subscribe_to_channel("orders")
    ...         result = await client.broadcast_message("order.created", "orders", "{}")
    ...         print(result.is_successful)
    >>>
    >>> asyncio.run(main())  # doctest: +SKIP
"""

from __future__ import annotations

from typing import Any

import httpx

from larasocket.errors import BadInputError
from larasocket.models.broadcast import BroadcastMessage, BroadcastResult
from larasocket.models.constants import DEFAULT_BROADCAST_URL
from larasocket.transport.broadcast import BroadcastClient
from larasocket.transport.manager import ConnectionManager


class LarasocketClient(ConnectionManager):
    """Connection manager with broadcast publishing.

    Args:
        token: Relay API token, used for both the socket and the HTTP API
        broadcast_url: Broadcast endpoint URL
        http_transport: Optional httpx transport for the broadcast client
        **kwargs: Passed to ``ConnectionManager``
    """

    def __init__(
        self,
        token: str,
        *,
        broadcast_url: str = DEFAULT_BROADCAST_URL,
        http_transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(token, **kwargs)
        self._broadcaster = BroadcastClient(token, url=broadcast_url, transport=http_transport)

    async def broadcast_message(
        self,
        event: str,
        channels: str,
        payload: str = "",
        connection_id: str | None = None,
    ) -> BroadcastResult:
        """Publish ``payload`` as ``event`` on ``channels``.

        ``connection_id`` defaults to this client's session, so the relay
        does not echo the message back to the sender.

        Raises:
            BadInputError: If ``event`` or ``channels`` is empty
        """
        self._ensure_not_disposed("broadcast_message")
        if not event:
            raise BadInputError("event")
        if not channels:
            raise BadInputError("channels")
        message = BroadcastMessage(
            event=event,
            channels=channels,
            payload=payload,
            connection_id=connection_id or self.connection_id,
        )
        return await self._broadcaster.broadcast(message)

    async def dispose(self) -> None:
        await super().dispose()
        await self._broadcaster.aclose()


__all__ = ["LarasocketClient"]
