"""Multi-subscriber, ordered, in-memory publish feeds.

The connection manager exposes three of these: ``messages``,
``reconnections`` and ``disconnections``. Listeners are called synchronously
and in subscription order while an event is published, which is what lets a
disconnection listener set ``cancel_reconnection``/``cancel_closing`` before
the manager reads them back. A listener returning an awaitable has it
scheduled as a task on the running loop.

Consumers that prefer pull-style iteration can use ``stream()``:

    >>> async def consume(manager):  # doctest: +SKIP
    ...     async for message in manager.messages.stream():
    ...         print(message)
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Generic, TypeVar

from larasocket.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Awaitable[None] | None]

_COMPLETED: Any = object()


class EventStream(Generic[T]):
    """A push feed with an explicit completed terminal state.

    Subscribers added after events were published only see future events.
    Once ``complete()`` has been called, publishing is a no-op and new
    ``stream()`` iterators finish immediately.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = threading.Lock()
        self._listeners: list[Listener[T]] = []
        self._queues: list[asyncio.Queue[Any]] = []
        self._completed = False
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners) + len(self._queues)

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener and return a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: T) -> None:
        """Deliver ``event`` to every current subscriber, in order.

        A failing listener is logged and skipped so that the remaining
        listeners and the publisher are unaffected.
        """
        with self._lock:
            if self._completed:
                return
            listeners = list(self._listeners)
            queues = list(self._queues)
        for listener in listeners:
            try:
                result = listener(event)
            except Exception as exc:
                logger.exception(
                    "larasocket.stream.listener_error",
                    stream=self._name,
                    error=str(exc),
                )
                continue
            if inspect.isawaitable(result):
                self._schedule(result)
        for queue in queues:
            queue.put_nowait(event)

    def complete(self) -> None:
        """Mark the stream finished and release every pull-style consumer."""
        with self._lock:
            if self._completed:
                return
            self._completed = True
            self._listeners.clear()
            queues = list(self._queues)
        for queue in queues:
            queue.put_nowait(_COMPLETED)

    async def stream(self) -> AsyncIterator[T]:
        """Iterate over future events until the stream completes."""
        queue: asyncio.Queue[Any] = asyncio.Queue()
        with self._lock:
            if self._completed:
                return
            self._queues.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _COMPLETED:
                    return
                yield item
        finally:
            with self._lock:
                if queue in self._queues:
                    self._queues.remove(queue)

    def _schedule(self, awaitable: Awaitable[None]) -> None:
        async def _run() -> None:
            try:
                await awaitable
            except Exception as exc:
                logger.exception(
                    "larasocket.stream.listener_error",
                    stream=self._name,
                    error=str(exc),
                )

        task = asyncio.get_running_loop().create_task(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


__all__ = ["EventStream", "Listener"]
