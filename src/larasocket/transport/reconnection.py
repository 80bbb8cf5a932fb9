"""Reconnection policy for the connection manager.

The controller guarantees that at most one reconnect attempt runs per
manager. Triggers that arrive while an attempt is in flight, while the
manager is stopping or disposing, or from a transport that is no longer the
active one are ignored.

A reconnect announces the disconnection (unless the cause is a failed
connect, which was announced already), tears the old epoch down and then
connects again. Failed connects are published as ``ERROR`` disconnections
and retried after ``error_reconnect_timeout`` until a listener vetoes with
``cancel_reconnection`` or the delay is unset.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Protocol

from larasocket.errors import (
    ClientDisposedError,
    InvalidTransitionError,
    LarasocketConnectionError,
)
from larasocket.models.constants import (
    DEFAULT_ERROR_RECONNECT_TIMEOUT,
    DEFAULT_HEALTH_CHECK_INTERVAL,
    DEFAULT_RECONNECT_TIMEOUT,
)
from larasocket.models.enums import DisconnectionType, ReconnectionType
from larasocket.models.events import DisconnectionInfo
from larasocket.observability import get_logger
from larasocket.transport.factory import Transport
from larasocket.utils.sanitization import sanitize_url

logger = get_logger(__name__)


@dataclass
class ReconnectConfig:
    """Reconnection and health-check settings.

    Attributes:
        reconnect_timeout: Seconds without inbound messages before the
            connection is considered lost; None disables the health monitor
            (default: 60.0)
        error_reconnect_timeout: Seconds to wait after a failed connect
            before retrying; None gives up after the first failure
            (default: 60.0)
        health_check_interval: Seconds between health checks (default: 1.0)
        enabled: Reconnect automatically on lost connections (default: True)
    """

    reconnect_timeout: float | None = DEFAULT_RECONNECT_TIMEOUT
    error_reconnect_timeout: float | None = DEFAULT_ERROR_RECONNECT_TIMEOUT
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL
    enabled: bool = True


class ReconnectTarget(Protocol):
    """The connection manager surface the controller drives."""

    @property
    def name(self) -> str: ...

    @property
    def url(self) -> str: ...

    @property
    def is_started(self) -> bool: ...

    @property
    def is_disposing(self) -> bool: ...

    @property
    def is_stopping(self) -> bool: ...

    @property
    def is_reconnection_enabled(self) -> bool: ...

    @property
    def active_transport(self) -> Transport | None: ...

    async def open_epoch(self, cause: ReconnectionType) -> None: ...

    async def close_epoch(self) -> None: ...

    def enter_reconnecting(self) -> None: ...

    def mark_stopped(self) -> None: ...

    def publish_disconnection(self, info: DisconnectionInfo) -> None: ...


class ReconnectionController:
    """Serializes reconnect attempts for one manager.

    Args:
        target: The manager being reconnected
        config: Reconnection settings, read on every attempt
        sleep: Awaitable delay, injectable for tests
    """

    def __init__(
        self,
        target: ReconnectTarget,
        config: ReconnectConfig,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._target = target
        self._config = config
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._reconnecting = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._logger = logger.bind(name=target.name)

    @property
    def is_reconnecting(self) -> bool:
        return self._reconnecting

    def should_ignore_reconnection(self, transport: Transport | None) -> bool:
        """Return True if a failure reported by ``transport`` must not reconnect."""
        target = self._target
        in_progress = target.is_disposing or self._reconnecting or target.is_stopping
        return in_progress or transport is not target.active_transport

    def trigger(
        self,
        cause: ReconnectionType,
        transport: Transport | None,
        error: BaseException | None = None,
        announce: bool = True,
    ) -> asyncio.Task[None] | None:
        """Schedule a background reconnect unless it must be ignored.

        Returns:
            The reconnect task, or None if the trigger was ignored
        """
        if not self._target.is_started or self.should_ignore_reconnection(transport):
            self._logger.debug("larasocket.reconnection.ignored", cause=cause.value)
            return None
        self._reconnecting = True
        return self._spawn(self._run(cause, False, error, announce))

    async def reconnect(
        self,
        cause: ReconnectionType,
        fail_fast: bool = False,
        error: BaseException | None = None,
        announce: bool = True,
    ) -> None:
        """Reconnect in the calling task.

        Raises:
            LarasocketConnectionError: If ``fail_fast`` and the connect fails
        """
        if not self._target.is_started:
            self._logger.debug("larasocket.reconnection.not_started", cause=cause.value)
            return
        if self._reconnecting:
            self._logger.debug("larasocket.reconnection.in_progress", cause=cause.value)
            return
        self._reconnecting = True
        await self._run(cause, fail_fast, error, announce)

    async def establish(self, fail_fast: bool = False) -> None:
        """Make the initial connection for ``start``.

        The first attempt runs inline. If it fails and a retry delay is
        configured, the retries continue in the background and the manager
        stays ``RECONNECTING`` until one succeeds.
        """
        self._reconnecting = True
        try:
            connected, delay = await self._try_connect(ReconnectionType.INITIAL, fail_fast)
        except BaseException:
            self._reconnecting = False
            raise
        if connected or delay is None:
            self._reconnecting = False
            return
        self._target.enter_reconnecting()
        self._spawn(self._retry(delay))

    async def cancel(self) -> None:
        """Cancel background attempts and clear the in-flight flag."""
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._reconnecting = False

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        cause: ReconnectionType,
        fail_fast: bool,
        error: BaseException | None,
        announce: bool,
    ) -> None:
        try:
            async with self._lock:
                await self._reconnect_locked(cause, fail_fast, error, announce)
        finally:
            self._reconnecting = False

    async def _retry(self, delay: float) -> None:
        try:
            async with self._lock:
                await self._connect_loop(ReconnectionType.ERROR, False, delay)
        finally:
            self._reconnecting = False

    async def _reconnect_locked(
        self,
        cause: ReconnectionType,
        fail_fast: bool,
        error: BaseException | None,
        announce: bool,
    ) -> None:
        target = self._target
        self._logger.info(
            "larasocket.reconnection.started",
            cause=cause.value,
            error=str(error) if error else None,
        )
        if announce and cause is not ReconnectionType.ERROR:
            info = DisconnectionInfo(type=cause.disconnection_type, exception=error)
            target.publish_disconnection(info)
            if info.cancel_reconnection:
                self._logger.info("larasocket.reconnection.cancelled_by_listener")
                await target.close_epoch()
                target.mark_stopped()
                return

        await target.close_epoch()
        if target.is_disposing:
            return
        if not target.is_reconnection_enabled and cause is not ReconnectionType.MANUAL:
            self._logger.info("larasocket.reconnection.disabled", cause=cause.value)
            target.mark_stopped()
            return

        target.enter_reconnecting()
        await self._connect_loop(cause, fail_fast)

    async def _connect_loop(
        self,
        cause: ReconnectionType,
        fail_fast: bool,
        delay: float | None = None,
    ) -> None:
        while True:
            if delay is not None:
                await self._sleep(delay)
                if not self._target.is_started or self._target.is_disposing:
                    return
            connected, delay = await self._try_connect(cause, fail_fast)
            if connected or delay is None:
                return
            cause = ReconnectionType.ERROR

    async def _try_connect(
        self, cause: ReconnectionType, fail_fast: bool
    ) -> tuple[bool, float | None]:
        """Open one epoch; return ``(connected, retry_delay)``."""
        target = self._target
        try:
            await target.open_epoch(cause)
        except (ClientDisposedError, InvalidTransitionError):
            # Not connect failures
            raise
        except Exception as exc:
            info = DisconnectionInfo(type=DisconnectionType.ERROR, exception=exc)
            target.publish_disconnection(info)
            if info.cancel_reconnection:
                self._logger.error(
                    "larasocket.reconnection.connect_failed",
                    error=str(exc),
                    retry=False,
                    reason="cancelled_by_listener",
                )
                target.mark_stopped()
                return False, None
            if fail_fast:
                target.mark_stopped()
                url = sanitize_url(target.url)
                raise LarasocketConnectionError(
                    f"Failed to connect to {url}: {exc}",
                    cause=exc,
                    url=url,
                ) from exc
            timeout = self._config.error_reconnect_timeout
            if timeout is None:
                self._logger.error(
                    "larasocket.reconnection.connect_failed",
                    error=str(exc),
                    retry=False,
                    reason="retry_disabled",
                )
                target.mark_stopped()
                return False, None
            self._logger.error(
                "larasocket.reconnection.connect_failed",
                error=str(exc),
                retry=True,
                retry_in=timeout,
            )
            return False, timeout
        if cause is not ReconnectionType.INITIAL:
            self._logger.info("larasocket.reconnection.reconnected", cause=cause.value)
        return True, None


__all__ = ["ReconnectConfig", "ReconnectTarget", "ReconnectionController"]
