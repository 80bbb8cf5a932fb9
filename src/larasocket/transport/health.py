"""Last-chance timer.

While active, the monitor wakes every ``interval`` seconds and compares the
time since the last inbound message with ``timeout``. When the threshold is
exceeded it deactivates itself and then calls ``on_timeout`` exactly once;
the manager reactivates it when a new transport is live.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable

from larasocket.models.constants import DEFAULT_HEALTH_CHECK_INTERVAL
from larasocket.observability import get_logger

logger = get_logger(__name__)


class HealthMonitor:
    """Periodic watchdog over the last-received timestamp.

    Args:
        timeout: Seconds of silence tolerated; None disables the monitor
        on_timeout: Called once when the silence exceeds ``timeout``
        interval: Seconds between checks
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        timeout: float | None,
        on_timeout: Callable[[], None],
        interval: float = DEFAULT_HEALTH_CHECK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout
        self._on_timeout = on_timeout
        self._interval = interval
        self._clock = clock
        self._last_received = clock()
        self._active = False
        self._task: asyncio.Task[None] | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def last_received(self) -> float:
        return self._last_received

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def touch(self) -> None:
        """Record inbound activity."""
        self._last_received = self._clock()

    def activate(self) -> None:
        """Start watching; the silence window restarts now."""
        self._last_received = self._clock()
        if self._timeout is None:
            return
        self._active = True
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop())

    def deactivate(self) -> None:
        self._active = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def close(self) -> None:
        self._active = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def check(self) -> bool:
        """Run one health check and return True if it fired."""
        if not self._active or self._timeout is None:
            return False
        elapsed = self._clock() - self._last_received
        if elapsed <= self._timeout:
            return False
        self.deactivate()
        logger.warning(
            "larasocket.health.timeout",
            elapsed=round(elapsed, 3),
            timeout=self._timeout,
        )
        self._on_timeout()
        return True

    async def _loop(self) -> None:
        while self._active:
            await asyncio.sleep(self._interval)
            if self.check():
                return


__all__ = ["HealthMonitor"]
