"""Ordered outbound pipes drained onto the active transport.

The manager owns two queues, one for text and one for binary envelopes.
``enqueue`` never blocks. Each connection epoch runs one ``drain`` task per
queue; every write happens under the write lock shared by both queues and
``send_instant``, because a transport permits one in-flight write.

An item whose write fails (or is cancelled mid-write) is held and written
first by the next epoch's drain, so queued work survives reconnects.
Protocol envelopes carry the generation of the connection they were built
for and are discarded by any other epoch's drain.
"""

from __future__ import annotations

import asyncio
from typing import Any

from larasocket.errors import ClientDisposedError
from larasocket.models.enums import MessageType
from larasocket.models.messages import OutboundEnvelope
from larasocket.observability import get_logger
from larasocket.transport.factory import Transport

logger = get_logger(__name__)

_CLOSED: Any = object()


class SendQueue:
    """FIFO of ``OutboundEnvelope`` consumed by one drain loop at a time."""

    def __init__(self, kind: MessageType) -> None:
        self._kind = kind
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._held: OutboundEnvelope | None = None
        self._closed = False

    @property
    def kind(self) -> MessageType:
        return self._kind

    @property
    def is_closed(self) -> bool:
        return self._closed

    def enqueue(self, envelope: OutboundEnvelope) -> None:
        """Append an envelope without waiting.

        Raises:
            ClientDisposedError: If the queue has been closed
            ValueError: If the envelope kind does not match the queue
        """
        if self._closed:
            raise ClientDisposedError("send")
        if envelope.kind is not self._kind:
            raise ValueError(
                f"{envelope.kind.value} envelope cannot go to the {self._kind.value} queue"
            )
        self._queue.put_nowait(envelope)

    async def drain(
        self,
        transport: Transport,
        write_lock: asyncio.Lock,
        generation: int | None = None,
    ) -> None:
        """Write queued envelopes to ``transport`` until closed or cancelled.

        Envelopes bound to a different ``generation`` are dropped unwritten.
        Write errors propagate to the caller, which treats them as a lost
        connection.
        """
        while True:
            if self._held is None:
                item = await self._queue.get()
                if item is _CLOSED:
                    return
                self._held = item
            envelope = self._held
            if envelope.generation is not None and envelope.generation != generation:
                self._held = None
                logger.debug(
                    "larasocket.send_queue.stale_dropped",
                    kind=self._kind.value,
                    generation=envelope.generation,
                )
                continue
            async with write_lock:
                await transport.send(envelope.payload)
            self._held = None
            logger.debug(
                "larasocket.send_queue.sent",
                kind=self._kind.value,
                size=len(envelope.payload),
            )

    def close(self) -> None:
        """Stop accepting items and release the drain loop."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)


__all__ = ["SendQueue"]
