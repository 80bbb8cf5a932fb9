"""Shared fakes for transport tests.

``FakeTransport`` is an in-memory ``Transport``: tests push frames into it
and inspect what the client wrote. ``FakeTransportFactory`` hands out a new
``FakeTransport`` per connect and can be told to fail the next attempts.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio

from larasocket.models.constants import WS_CLOSE_NORMAL
from larasocket.models.enums import MessageType
from larasocket.transport.factory import Frame
from larasocket.transport.manager import ConnectionManager
from larasocket.transport.reconnection import ReconnectConfig

TEST_TOKEN = "test-token-0123456789"
TEST_UUID = "6f1c0c2e-8d3a-4b7e-9a51-2f0e4c1d9b77"


class FakeTransport:
    """In-memory transport recording every write."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue[Frame | BaseException] = asyncio.Queue()
        self.sent: list[str | bytes] = []
        self.closed_with: tuple[int, str] | None = None
        self.aborted = False
        self.fail_send: BaseException | None = None
        self.fail_close: BaseException | None = None
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    async def receive(self) -> Frame:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data: str | bytes) -> None:
        if self.fail_send is not None:
            raise self.fail_send
        self.sent.append(data)

    async def close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None:
        self.closed_with = (code, reason)
        self._open = False
        if self.fail_close is not None:
            raise self.fail_close

    def abort(self) -> None:
        self.aborted = True
        self._open = False

    def push_text(self, text: str, end_of_message: bool = True) -> None:
        self.incoming.put_nowait(Frame(MessageType.TEXT, text.encode("utf-8"), end_of_message))

    def push_binary(self, data: bytes, end_of_message: bool = True) -> None:
        self.incoming.put_nowait(Frame(MessageType.BINARY, data, end_of_message))

    def push_close(self, code: int = WS_CLOSE_NORMAL, reason: str = "") -> None:
        self.incoming.put_nowait(
            Frame(MessageType.CLOSE, close_code=code, close_reason=reason)
        )

    def push_error(self, error: BaseException) -> None:
        self.incoming.put_nowait(error)

    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(item) for item in self.sent if isinstance(item, str)]

    def sent_actions(self) -> list[str]:
        return [item.get("action", "") for item in self.sent_json()]


class FakeTransportFactory:
    """Hands out ``FakeTransport`` instances; queued failures are raised first."""

    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []
        self.urls: list[str] = []
        self.failures: list[BaseException] = []

    @property
    def latest(self) -> FakeTransport:
        return self.transports[-1]

    @property
    def attempts(self) -> int:
        return len(self.urls)

    async def connect(self, url: str) -> FakeTransport:
        self.urls.append(url)
        if self.failures:
            raise self.failures.pop(0)
        transport = FakeTransport()
        self.transports.append(transport)
        return transport


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until the loop is idle."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def handshake_frame(connection_id: str = "conn-1") -> str:
    return json.dumps({"connection_id": connection_id}, indent=4)


@pytest.fixture
def factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest_asyncio.fixture
async def manager(
    factory: FakeTransportFactory, clock: FakeClock
) -> AsyncIterator[ConnectionManager]:
    """Manager wired to the fake factory, with fast retries and no health timer."""
    instance = ConnectionManager(
        TEST_TOKEN,
        client_uuid=TEST_UUID,
        transport_factory=factory,
        reconnect_config=ReconnectConfig(
            reconnect_timeout=None,
            error_reconnect_timeout=0.01,
        ),
        name="test",
        clock=clock,
    )
    yield instance
    await instance.dispose()
