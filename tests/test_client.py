"""Tests for LarasocketClient broadcast publishing."""

from urllib.parse import parse_qs

import httpx
import pytest

from larasocket import LarasocketClient
from larasocket.errors import BadInputError, ClientDisposedError
from larasocket.transport.reconnection import ReconnectConfig
from tests.transport.conftest import TEST_TOKEN, FakeTransportFactory, handshake_frame, settle


class _Recorder:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, json={"status": "queued"})

    def form(self, index: int = -1) -> dict[str, list[str]]:
        return parse_qs(self.requests[index].content.decode(), keep_blank_values=True)


def _make_client(factory: FakeTransportFactory, recorder: _Recorder) -> LarasocketClient:
    return LarasocketClient(
        TEST_TOKEN,
        transport_factory=factory,
        http_transport=httpx.MockTransport(recorder),
        reconnect_config=ReconnectConfig(reconnect_timeout=None),
    )


class TestBroadcastMessage:
    """broadcast_message defaults and validation."""

    @pytest.mark.asyncio
    async def test_defaults_to_own_connection_id(self) -> None:
        """The relay skips the sender, so the client's id is attached by default."""
        factory = FakeTransportFactory()
        recorder = _Recorder()
        client = _make_client(factory, recorder)
        await client.start()
        factory.latest.push_text(handshake_frame("conn-7"))
        await settle()

        result = await client.broadcast_message("order.created", "orders", "{}")

        assert result.is_successful is True
        assert recorder.form()["connection_id"] == ["conn-7"]
        await client.dispose()

    @pytest.mark.asyncio
    async def test_explicit_connection_id_wins(self) -> None:
        factory = FakeTransportFactory()
        recorder = _Recorder()
        client = _make_client(factory, recorder)

        await client.broadcast_message("order.created", "orders", connection_id="other")

        assert recorder.form()["connection_id"] == ["other"]
        assert recorder.form()["payload"] == [""]
        await client.dispose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("event", "channels", "argument"),
        [("", "orders", "event"), ("order.created", "", "channels")],
    )
    async def test_empty_event_or_channels_rejected(
        self, event: str, channels: str, argument: str
    ) -> None:
        recorder = _Recorder()
        client = _make_client(FakeTransportFactory(), recorder)

        with pytest.raises(BadInputError) as exc_info:
            await client.broadcast_message(event, channels)

        assert exc_info.value.argument == argument
        assert recorder.requests == []
        await client.dispose()

    @pytest.mark.asyncio
    async def test_disposed_client_rejects_broadcast(self) -> None:
        client = _make_client(FakeTransportFactory(), _Recorder())
        await client.dispose()

        with pytest.raises(ClientDisposedError) as exc_info:
            await client.broadcast_message("order.created", "orders")

        assert exc_info.value.operation == "broadcast_message"
