"""Tests for BroadcastClient response mapping."""

from urllib.parse import parse_qs

import httpx
import pytest

from larasocket.models.broadcast import BroadcastMessage
from larasocket.transport.broadcast import UNKNOWN_RESULT_MESSAGE, BroadcastClient

from .conftest import TEST_TOKEN

BROADCAST_URL = "https://larasocket.test/api/broadcast"


def _client(handler) -> BroadcastClient:  # type: ignore[no-untyped-def]
    return BroadcastClient(TEST_TOKEN, url=BROADCAST_URL, transport=httpx.MockTransport(handler))


def _message(**overrides: str) -> BroadcastMessage:
    fields = {"event": "order.created", "channels": "orders", "payload": '{"id": 1}'}
    fields.update(overrides)
    return BroadcastMessage(**fields)


class TestBroadcastRequest:
    """Shape of the outgoing HTTP request."""

    @pytest.mark.asyncio
    async def test_posts_form_with_bearer_token(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"status": "queued"})

        async with _client(handler) as client:
            await client.broadcast(_message(connection_id="conn-1"))

        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == BROADCAST_URL
        assert request.headers["Authorization"] == f"Bearer {TEST_TOKEN}"
        assert request.headers["Accept"] == "application/json"
        form = parse_qs(request.content.decode())
        assert form == {
            "event": ["order.created"],
            "channels": ["orders"],
            "payload": ['{"id": 1}'],
            "connection_id": ["conn-1"],
        }

    @pytest.mark.asyncio
    async def test_missing_connection_id_sent_empty(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"status": "queued"})

        async with _client(handler) as client:
            await client.broadcast(_message())

        form = parse_qs(captured[0].content.decode(), keep_blank_values=True)
        assert form["connection_id"] == [""]


class TestBroadcastResult:
    """Mapping of status codes and bodies to BroadcastResult."""

    @pytest.mark.asyncio
    async def test_ok_is_successful(self) -> None:
        async with _client(lambda _: httpx.Response(200, json={"status": "queued"})) as client:
            result = await client.broadcast(_message())

        assert result.is_successful is True
        assert result.message == "queued"
        assert result.status_code == 200
        assert result.errors is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 500])
    async def test_error_status_carries_message(self, status: int) -> None:
        async with _client(
            lambda _: httpx.Response(status, json={"message": "Unauthenticated."})
        ) as client:
            result = await client.broadcast(_message())

        assert result.is_successful is False
        assert result.message == "Unauthenticated."
        assert result.status_code == status

    @pytest.mark.asyncio
    async def test_validation_failure_carries_field_errors(self) -> None:
        body = {"message": "bad", "errors": {"channels": ["required"]}}
        async with _client(lambda _: httpx.Response(422, json=body)) as client:
            result = await client.broadcast(_message())

        assert result.is_successful is False
        assert result.message == "bad"
        assert result.errors is not None
        assert result.errors.channels == ["required"]
        assert result.errors.event is None

    @pytest.mark.asyncio
    async def test_unexpected_status_is_unknown(self) -> None:
        async with _client(lambda _: httpx.Response(418, text="teapot")) as client:
            result = await client.broadcast(_message())

        assert result.is_successful is False
        assert result.message == UNKNOWN_RESULT_MESSAGE
        assert result.status_code == 418

    @pytest.mark.asyncio
    async def test_network_error_becomes_failed_result(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        async with _client(handler) as client:
            result = await client.broadcast(_message())

        assert result.is_successful is False
        assert result.message == "boom"
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_invalid_json_becomes_failed_result(self) -> None:
        async with _client(lambda _: httpx.Response(200, text="<html>")) as client:
            result = await client.broadcast(_message())

        assert result.is_successful is False
        assert result.message

    @pytest.mark.asyncio
    async def test_client_is_reused_until_closed(self) -> None:
        client = _client(lambda _: httpx.Response(200, json={"status": "ok"}))

        await client.broadcast(_message())
        first = client._client
        await client.broadcast(_message())

        assert client._client is first
        await client.aclose()
        assert client._client is None
