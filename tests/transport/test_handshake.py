"""Tests for the link handshake and deferred channel subscription."""

import asyncio
import json

import pytest

from larasocket.errors import ClientDisposedError, LarasocketProtocolError
from larasocket.models.messages import OutboundEnvelope, ResponseMessage
from larasocket.transport.handshake import ProtocolHandshake

from .conftest import TEST_TOKEN, TEST_UUID, handshake_frame, settle


@pytest.fixture
def outbox() -> list[OutboundEnvelope]:
    return []


@pytest.fixture
def handshake(outbox: list[OutboundEnvelope]) -> ProtocolHandshake:
    return ProtocolHandshake(TEST_TOKEN, TEST_UUID, outbox.append)


def _payloads(outbox: list[OutboundEnvelope]) -> list[dict[str, str]]:
    return [json.loads(envelope.payload) for envelope in outbox]


class TestLinkRequest:
    """The link request sent right after connecting."""

    def test_start_enqueues_link_envelope(
        self, handshake: ProtocolHandshake, outbox: list[OutboundEnvelope]
    ) -> None:
        handshake.start()

        assert _payloads(outbox) == [{"action": "link", "token": TEST_TOKEN, "uuid": TEST_UUID}]

    def test_link_round_trip_yields_connection_id(
        self, handshake: ProtocolHandshake, outbox: list[OutboundEnvelope]
    ) -> None:
        """Sending the link and feeding back a response recovers the same id."""
        handshake.start()
        link = _payloads(outbox)[0]
        response = json.dumps({"connection_id": f"conn-for-{link['uuid']}"})

        assert handshake.inspect(ResponseMessage.text_message(response)) is True
        assert handshake.connection_id == f"conn-for-{TEST_UUID}"


class TestHandshakeDetection:
    """Structural detection of the handshake response."""

    @pytest.mark.parametrize(
        "text",
        [
            '{"connection_id": "abc"}',
            '{\n "connection_id": "abc"}',
            '{\n    "connection_id": "abc"\n}',
            '{"socket": 1, "connection_id": "abc"}',
        ],
    )
    def test_any_formatting_is_detected(self, handshake: ProtocolHandshake, text: str) -> None:
        assert handshake.inspect(ResponseMessage.text_message(text)) is True
        assert handshake.connection_id == "abc"

    @pytest.mark.parametrize(
        "text",
        [
            '{"event": "order.created", "data": {}}',
            "not json at all",
            '["connection_id"]',
            '{"connection_id": ""}',
            '{"connection_id": 42}',
        ],
    )
    def test_other_payloads_fall_through(self, handshake: ProtocolHandshake, text: str) -> None:
        assert handshake.inspect(ResponseMessage.text_message(text)) is False
        assert handshake.connection_id is None

    def test_binary_messages_are_ignored(self, handshake: ProtocolHandshake) -> None:
        message = ResponseMessage.binary_message(handshake_frame().encode())
        assert handshake.inspect(message) is False


class TestSubscribe:
    """Channel subscription before and after the handshake."""

    @pytest.mark.asyncio
    async def test_subscribe_after_handshake_is_immediate(
        self, handshake: ProtocolHandshake, outbox: list[OutboundEnvelope]
    ) -> None:
        handshake.inspect(ResponseMessage.text_message(handshake_frame("conn-1")))

        await handshake.subscribe("orders")

        assert _payloads(outbox) == [
            {
                "action": "subscribe",
                "channel": "orders",
                "connection_id": "conn-1",
                "token": TEST_TOKEN,
            }
        ]

    @pytest.mark.asyncio
    async def test_subscribe_waits_for_handshake(
        self, handshake: ProtocolHandshake, outbox: list[OutboundEnvelope]
    ) -> None:
        task = asyncio.create_task(handshake.subscribe("orders"))
        await settle()
        assert not task.done()
        assert outbox == []

        handshake.inspect(ResponseMessage.text_message(handshake_frame("conn-9")))
        await asyncio.wait_for(task, timeout=1.0)

        assert [p["connection_id"] for p in _payloads(outbox)] == ["conn-9"]

    @pytest.mark.asyncio
    async def test_two_early_subscribes_produce_one_envelope(
        self, handshake: ProtocolHandshake, outbox: list[OutboundEnvelope]
    ) -> None:
        """Exactly one subscribe request per handshake, never zero or two."""
        first = asyncio.create_task(handshake.subscribe("foo"))
        second = asyncio.create_task(handshake.subscribe("foo"))
        await settle()

        handshake.inspect(ResponseMessage.text_message(handshake_frame()))
        await asyncio.wait_for(asyncio.gather(first, second), timeout=1.0)

        subscribes = [p for p in _payloads(outbox) if p["action"] == "subscribe"]
        assert len(subscribes) == 1
        assert subscribes[0]["channel"] == "foo"

    @pytest.mark.asyncio
    async def test_subscribe_timeout_raises_protocol_error(
        self, handshake: ProtocolHandshake
    ) -> None:
        with pytest.raises(LarasocketProtocolError) as exc_info:
            await handshake.subscribe("orders", timeout=0.01)

        assert exc_info.value.code == "larasocket:protocol/handshake"
        assert exc_info.value.details["channel"] == "orders"

    @pytest.mark.asyncio
    async def test_channel_resubscribed_after_new_handshake(
        self, handshake: ProtocolHandshake, outbox: list[OutboundEnvelope]
    ) -> None:
        """After a reconnect the pending channel is subscribed with the new id."""
        handshake.inspect(ResponseMessage.text_message(handshake_frame("conn-1")))
        await handshake.subscribe("orders")

        handshake.reset()
        assert handshake.connection_id is None
        handshake.inspect(ResponseMessage.text_message(handshake_frame("conn-2")))

        assert [p["connection_id"] for p in _payloads(outbox)] == ["conn-1", "conn-2"]

    @pytest.mark.asyncio
    async def test_close_releases_waiters(self, handshake: ProtocolHandshake) -> None:
        task = asyncio.create_task(handshake.subscribe("orders"))
        await settle()

        handshake.close()

        with pytest.raises(ClientDisposedError):
            await asyncio.wait_for(task, timeout=1.0)

    @pytest.mark.asyncio
    async def test_channel_is_scoped_to_instance(self) -> None:
        """Two handshakes never share a pending channel."""
        first_outbox: list[OutboundEnvelope] = []
        second_outbox: list[OutboundEnvelope] = []
        first = ProtocolHandshake(TEST_TOKEN, "uuid-1", first_outbox.append)
        second = ProtocolHandshake(TEST_TOKEN, "uuid-2", second_outbox.append)
        first.inspect(ResponseMessage.text_message(handshake_frame("conn-a")))
        await first.subscribe("orders")

        second.inspect(ResponseMessage.text_message(handshake_frame("conn-b")))

        assert first.channel == "orders"
        assert second.channel is None
        assert second_outbox == []
