"""Connection manager for the Larasocket relay.

The manager owns the single active transport and everything bound to it.
Each physical connection is an *epoch*: one read loop and two send-drain
loops run as asyncio tasks for exactly that transport. Ending an epoch
(stop, reconnect, dispose) cancels those tasks, and failures reported by a
stale epoch are ignored, so a newer connection is never torn down by an
older one.

Example:
    >>> import asyncio
    >>> from larasocket.transport import ConnectionManager
    >>>
    >>> async def main() -> None:
    ...     async with ConnectionManager("my-token") as manager:
    ...         manager.messages.subscribe(print)
    ...         await manager.subscribe_to_channel("orders")
    ...         await asyncio.sleep(60)
    >>>
    >>> asyncio.run(main())  # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from types import TracebackType

from larasocket.errors import BadInputError, ClientDisposedError, StopFailedError
from larasocket.models.constants import (
    DEFAULT_CLIENT_NAME,
    DEFAULT_RELAY_HOST,
    WS_CLOSE_NORMAL,
)
from larasocket.models.enums import (
    ConnectionState,
    DisconnectionType,
    MessageType,
    ReconnectionType,
)
from larasocket.models.events import DisconnectionInfo, ReconnectionInfo
from larasocket.models.messages import OutboundEnvelope, ResponseMessage
from larasocket.observability import get_logger
from larasocket.state.machine import transition
from larasocket.transport.factory import (
    Frame,
    Transport,
    TransportFactory,
    WebSocketTransportFactory,
    build_relay_url,
)
from larasocket.transport.handshake import ProtocolHandshake
from larasocket.transport.health import HealthMonitor
from larasocket.transport.receiver import FrameReceiver
from larasocket.transport.reconnection import ReconnectConfig, ReconnectionController
from larasocket.transport.send_queue import SendQueue
from larasocket.transport.streams import EventStream
from larasocket.utils.sanitization import sanitize_url

logger = get_logger(__name__)


@dataclass
class _Epoch:
    transport: Transport
    generation: int
    tasks: list[asyncio.Task[None]] = field(default_factory=list)
    reported: bool = False


class ConnectionManager:
    """Resilient client session with the relay.

    Keeps one logical session alive across physical reconnects, performs the
    link handshake, re-subscribes the requested channel after every
    reconnect and exposes inbound messages and lifecycle events as
    ``EventStream`` feeds.

    Args:
        token: Relay API token
        client_uuid: Session UUID; generated when omitted
        url: Full relay URL; built from ``host``, token and UUID when omitted
        host: Relay host used to build the URL
        transport_factory: Source of transports (default: websockets)
        reconnect_config: Reconnection and health-check settings
        name: Client name bound into every log line
        text_conversion: Decode text frames to ``str`` (default: True)
        clock: Monotonic time source for the health monitor
    """

    def __init__(
        self,
        token: str,
        *,
        client_uuid: str | None = None,
        url: str | None = None,
        host: str = DEFAULT_RELAY_HOST,
        transport_factory: TransportFactory | None = None,
        reconnect_config: ReconnectConfig | None = None,
        name: str = DEFAULT_CLIENT_NAME,
        text_conversion: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not token:
            raise BadInputError("token")
        self._token = token
        self._client_uuid = client_uuid or str(uuid.uuid4())
        self._url = url or build_relay_url(token, self._client_uuid, host)
        self._name = name
        self._factory: TransportFactory = transport_factory or WebSocketTransportFactory()
        self._config = reconnect_config or ReconnectConfig()
        self._text_conversion = text_conversion
        self._logger = logger.bind(name=name)

        self._state = ConnectionState.NOT_STARTED
        self._disposing = False
        self._stopping = False
        self._epoch: _Epoch | None = None
        self._generation = 0
        # Bumped by start and stop; a connect begun in an older session is discarded
        self._session = 0
        self._write_lock = asyncio.Lock()

        self._messages: EventStream[ResponseMessage] = EventStream("messages")
        self._reconnections: EventStream[ReconnectionInfo] = EventStream("reconnections")
        self._disconnections: EventStream[DisconnectionInfo] = EventStream("disconnections")

        self._text_queue = SendQueue(MessageType.TEXT)
        self._binary_queue = SendQueue(MessageType.BINARY)
        self._handshake = ProtocolHandshake(token, self._client_uuid, self._enqueue_protocol)
        self._health = HealthMonitor(
            self._config.reconnect_timeout,
            self._on_health_timeout,
            interval=self._config.health_check_interval,
            clock=clock,
        )
        self._reconnection = ReconnectionController(self, self._config)

    async def __aenter__(self) -> ConnectionManager:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.dispose()

    # -- properties ---------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> str:
        return self._url

    @property
    def client_uuid(self) -> str:
        return self._client_uuid

    @property
    def connection_id(self) -> str | None:
        """Session id from the last handshake; None until linked."""
        return self._handshake.connection_id

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_started(self) -> bool:
        return self._state in ConnectionState.started_states()

    @property
    def is_running(self) -> bool:
        return self._state is ConnectionState.RUNNING

    @property
    def is_disposing(self) -> bool:
        return self._disposing

    @property
    def is_stopping(self) -> bool:
        return self._stopping

    @property
    def active_transport(self) -> Transport | None:
        return self._epoch.transport if self._epoch is not None else None

    @property
    def reconnect_config(self) -> ReconnectConfig:
        return self._config

    @property
    def is_reconnection_enabled(self) -> bool:
        return self._config.enabled

    @is_reconnection_enabled.setter
    def is_reconnection_enabled(self, enabled: bool) -> None:
        self._config.enabled = enabled
        if not self.is_running:
            return
        if enabled:
            self._health.activate()
        else:
            self._health.deactivate()

    @property
    def is_text_message_conversion_enabled(self) -> bool:
        return self._text_conversion

    @is_text_message_conversion_enabled.setter
    def is_text_message_conversion_enabled(self, enabled: bool) -> None:
        # Read by the receiver of the next epoch
        self._text_conversion = enabled

    @property
    def messages(self) -> EventStream[ResponseMessage]:
        return self._messages

    @property
    def reconnections(self) -> EventStream[ReconnectionInfo]:
        return self._reconnections

    @property
    def disconnections(self) -> EventStream[DisconnectionInfo]:
        return self._disconnections

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Connect to the relay.

        Connection failures are reported on ``disconnections`` and retried in
        the background. Calling ``start`` on a started client does nothing.

        Raises:
            ClientDisposedError: If the client has been disposed
        """
        await self._start(fail_fast=False)

    async def start_or_fail(self) -> None:
        """Connect to the relay, raising if the first attempt fails.

        Raises:
            ClientDisposedError: If the client has been disposed
            LarasocketConnectionError: If the transport cannot be established
        """
        await self._start(fail_fast=True)

    async def stop(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> bool:
        """Close the connection gracefully.

        Returns:
            True if the close handshake completed, False otherwise
        """
        return await self._stop(code, reason, fail_fast=False)

    async def stop_or_fail(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> bool:
        """Close the connection gracefully, raising if the close handshake fails.

        The client is stopped even when this raises.

        Raises:
            StopFailedError: If closing the transport failed
        """
        return await self._stop(code, reason, fail_fast=True)

    async def reconnect(self) -> None:
        """Replace the current connection with a fresh one."""
        await self._manual_reconnect(fail_fast=False)

    async def reconnect_or_fail(self) -> None:
        """Replace the current connection, raising if connecting fails.

        Raises:
            LarasocketConnectionError: If the new transport cannot be established
        """
        await self._manual_reconnect(fail_fast=True)

    async def dispose(self) -> None:
        """Shut the client down for good. Safe to call more than once."""
        if self._disposing:
            return
        self._logger.debug("larasocket.manager.disposing")
        self._disposing = True
        await self._reconnection.cancel()
        await self._health.close()
        self._text_queue.close()
        self._binary_queue.close()
        self._handshake.close()
        await self.close_epoch()
        self._disconnections.publish(DisconnectionInfo(type=DisconnectionType.EXIT))
        self._set_state(ConnectionState.DISPOSED)
        self._messages.complete()
        self._reconnections.complete()
        self._disconnections.complete()
        self._logger.info("larasocket.manager.disposed")

    # -- sending ------------------------------------------------------------

    async def subscribe_to_channel(self, channel: str, timeout: float | None = None) -> None:
        """Subscribe to ``channel`` once the session id is known.

        Waits for the handshake when it has not completed yet. The channel is
        subscribed again after every reconnect.

        Raises:
            BadInputError: If ``channel`` is empty
            LarasocketProtocolError: If ``timeout`` expires before the handshake
        """
        self._ensure_not_disposed("subscribe_to_channel")
        if not channel:
            raise BadInputError("channel")
        await self._handshake.subscribe(channel, timeout)

    def send(self, message: str | bytes) -> None:
        """Queue a message; str goes out as text, bytes as binary.

        Never waits on the network. Queued messages survive reconnects.
        """
        self._ensure_not_disposed("send")
        envelope = self._envelope(message)
        if envelope.kind is MessageType.TEXT:
            self._text_queue.enqueue(envelope)
        else:
            self._binary_queue.enqueue(envelope)

    async def send_instant(self, message: str | bytes) -> None:
        """Write a message immediately, bypassing the queues.

        Skipped when there is no open transport.
        """
        self._ensure_not_disposed("send_instant")
        envelope = self._envelope(message)
        epoch = self._epoch
        if epoch is None or not epoch.transport.is_open:
            self._logger.warning(
                "larasocket.manager.send_instant_skipped",
                kind=envelope.kind.value,
                state=self._state.value,
            )
            return
        async with self._write_lock:
            await epoch.transport.send(envelope.payload)

    # -- reconnection target ------------------------------------------------

    async def open_epoch(self, cause: ReconnectionType) -> None:
        """Acquire a transport and start the loops bound to it.

        A connect that finishes after the client was stopped, restarted or
        disposed is aborted instead of installed.
        """
        session = self._session
        transport = await self._factory.connect(self._url)
        if self._discard_connect(transport, session):
            return
        if self._epoch is not None:
            # One live transport per client
            await self.close_epoch()
            if self._discard_connect(transport, session):
                return

        self._generation += 1
        epoch = _Epoch(transport=transport, generation=self._generation)
        self._epoch = epoch
        loop = asyncio.get_running_loop()
        epoch.tasks = [
            loop.create_task(self._read_loop(epoch)),
            loop.create_task(self._drain_loop(epoch, self._text_queue)),
            loop.create_task(self._drain_loop(epoch, self._binary_queue)),
        ]
        if self._state is not ConnectionState.RUNNING:
            self._set_state(ConnectionState.RUNNING)
        self._logger.info(
            "larasocket.manager.connected",
            url=sanitize_url(self._url),
            cause=cause.value,
            generation=epoch.generation,
        )
        self._reconnections.publish(ReconnectionInfo(type=cause))
        if self._config.enabled:
            self._health.activate()
        self._handshake.start()

    async def close_epoch(self) -> None:
        """Cancel the active epoch's loops and drop its transport."""
        epoch, self._epoch = self._epoch, None
        self._health.deactivate()
        self._handshake.reset()
        if epoch is None:
            return
        current = asyncio.current_task()
        pending = [task for task in epoch.tasks if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        epoch.transport.abort()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._logger.debug("larasocket.manager.epoch_closed", generation=epoch.generation)

    def enter_reconnecting(self) -> None:
        if self._state is not ConnectionState.RECONNECTING:
            self._set_state(ConnectionState.RECONNECTING)

    def mark_stopped(self) -> None:
        if self.is_started or self._state is ConnectionState.STOPPING:
            self._set_state(ConnectionState.STOPPED)
            self._logger.info("larasocket.manager.stopped")

    def publish_disconnection(self, info: DisconnectionInfo) -> None:
        self._logger.info(
            "larasocket.manager.disconnected",
            type=info.type.value,
            error=str(info.exception) if info.exception else None,
        )
        self._disconnections.publish(info)

    # -- internals ----------------------------------------------------------

    async def _start(self, fail_fast: bool) -> None:
        self._ensure_not_disposed("start")
        if self.is_started:
            self._logger.debug("larasocket.manager.already_started")
            return
        self._set_state(ConnectionState.STARTING)
        self._session += 1
        self._logger.debug("larasocket.manager.starting", url=sanitize_url(self._url))
        await self._reconnection.establish(fail_fast)

    async def _stop(self, code: int, reason: str, fail_fast: bool) -> bool:
        self._ensure_not_disposed("stop")
        if not self.is_started:
            self._logger.info("larasocket.manager.already_stopped")
            return False

        self._session += 1
        await self._reconnection.cancel()
        self._set_state(ConnectionState.STOPPING)
        self._stopping = True
        self._health.deactivate()
        epoch = self._epoch
        result = False
        error: Exception | None = None
        try:
            if epoch is not None:
                await epoch.transport.close(code, reason)
                result = True
        except Exception as exc:
            self._logger.error("larasocket.manager.stop_error", error=str(exc))
            error = exc
        finally:
            await self.close_epoch()
            self._stopping = False
            self.mark_stopped()

        self._disconnections.publish(DisconnectionInfo(type=DisconnectionType.BY_USER))
        if error is not None and fail_fast:
            raise StopFailedError(f"Failed to stop client: {error}", cause=error) from error
        return result

    async def _manual_reconnect(self, fail_fast: bool) -> None:
        self._ensure_not_disposed("reconnect")
        if not self.is_started:
            self._logger.debug("larasocket.manager.reconnect_ignored", state=self._state.value)
            return
        await self._reconnection.reconnect(ReconnectionType.MANUAL, fail_fast=fail_fast)

    async def _read_loop(self, epoch: _Epoch) -> None:
        receiver = FrameReceiver(epoch.transport, self._handle_message, self._text_conversion)
        try:
            close_frame = await receiver.run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._on_epoch_lost(epoch, exc, "receive")
            return
        await self._on_server_close(epoch, close_frame)

    async def _drain_loop(self, epoch: _Epoch, queue: SendQueue) -> None:
        try:
            await queue.drain(epoch.transport, self._write_lock, epoch.generation)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._on_epoch_lost(epoch, exc, f"send_{queue.kind.value}")

    def _handle_message(self, message: ResponseMessage) -> None:
        self._health.touch()
        self._logger.debug(
            "larasocket.manager.message_received",
            message_type=message.message_type.value,
        )
        if message.message_type is MessageType.TEXT:
            self._handshake.inspect(message)
        self._messages.publish(message)

    async def _on_server_close(self, epoch: _Epoch, frame: Frame) -> None:
        if not self.is_started or self._stopping or epoch is not self._epoch:
            return
        if epoch.reported or self._reconnection.is_reconnecting:
            return
        epoch.reported = True
        info = DisconnectionInfo(
            type=DisconnectionType.BY_SERVER,
            close_status=frame.close_code,
            close_status_description=frame.close_reason,
        )
        self.publish_disconnection(info)
        if not info.cancel_closing:
            try:
                await epoch.transport.close(WS_CLOSE_NORMAL, "Closing")
            except Exception as exc:
                self._logger.warning("larasocket.manager.close_error", error=str(exc))
        # Reconnection settings decide between a new connection and stopping
        self._reconnection.trigger(ReconnectionType.LOST, epoch.transport, announce=False)

    def _on_epoch_lost(self, epoch: _Epoch, error: BaseException, source: str) -> None:
        if not self.is_started or self._reconnection.should_ignore_reconnection(epoch.transport):
            return
        if epoch.reported:
            return
        epoch.reported = True
        self._logger.error(
            "larasocket.manager.connection_lost",
            source=source,
            generation=epoch.generation,
            error=str(error),
        )
        self._reconnection.trigger(ReconnectionType.LOST, epoch.transport, error=error)

    def _discard_connect(self, transport: Transport, session: int) -> bool:
        if self._disposing:
            transport.abort()
            raise ClientDisposedError("start")
        if self.is_started and session == self._session:
            return False
        # Stopped or restarted while connecting
        transport.abort()
        self._logger.debug("larasocket.manager.connect_discarded", state=self._state.value)
        return True

    def _on_health_timeout(self) -> None:
        self._reconnection.trigger(ReconnectionType.LOST, self.active_transport)

    def _enqueue_protocol(self, envelope: OutboundEnvelope) -> None:
        # Link and subscribe requests only make sense on the current connection
        self._text_queue.enqueue(replace(envelope, generation=self._generation))

    def _envelope(self, message: str | bytes) -> OutboundEnvelope:
        if message is None or len(message) == 0:
            raise BadInputError("message")
        return OutboundEnvelope.from_payload(message)

    def _ensure_not_disposed(self, operation: str) -> None:
        if self._disposing:
            raise ClientDisposedError(operation)

    def _set_state(self, state: ConnectionState) -> None:
        previous = self._state
        self._state = transition(previous, state, self._name)
        self._logger.debug(
            "larasocket.manager.state_changed",
            previous=previous.value,
            state=state.value,
        )


__all__ = ["ConnectionManager"]
