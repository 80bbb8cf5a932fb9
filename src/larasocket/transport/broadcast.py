"""HTTP client for the relay's broadcast endpoint.

Publishing is a single POST with no retry. Every outcome, including network
errors, is returned as a ``BroadcastResult`` value.
"""

from __future__ import annotations

from typing import Any

import httpx

from larasocket.models.broadcast import (
    BroadcastMessage,
    BroadcastMessageBody,
    BroadcastResult,
    BroadcastStatusBody,
    BroadcastValidationBody,
)
from larasocket.models.constants import DEFAULT_BROADCAST_TIMEOUT, DEFAULT_BROADCAST_URL
from larasocket.observability import get_logger
from larasocket.utils.sanitization import sanitize_token

logger = get_logger(__name__)

UNKNOWN_RESULT_MESSAGE = "Unknown"


class BroadcastClient:
    """Async publisher for ``BroadcastMessage`` values.

    The underlying ``httpx.AsyncClient`` is created lazily and reused; pass
    ``transport`` to route requests through a custom (or mock) transport.

    Example:
        >>> async with BroadcastClient("my-token") as client:  # doctest: +SKIP
        ...     result = await client.broadcast(
        ...         BroadcastMessage(event="order.created", channels="orders")
        ...     )
    """

    def __init__(
        self,
        token: str,
        url: str = DEFAULT_BROADCAST_URL,
        timeout: float = DEFAULT_BROADCAST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._url = url
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        return self._url

    async def __aenter__(self) -> BroadcastClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def broadcast(self, message: BroadcastMessage) -> BroadcastResult:
        """Publish ``message`` and map the response to a result."""
        try:
            response = await self._get_client().post(
                self._url,
                data=message.to_form(),
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Accept": "application/json",
                },
            )
            result = self._to_result(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "larasocket.broadcast.request_failed",
                url=self._url,
                token=sanitize_token(self._token),
                error=str(exc),
            )
            return BroadcastResult(is_successful=False, message=str(exc))

        logger.info(
            "larasocket.broadcast.completed",
            broadcast_event=message.event,
            channels=message.channels,
            status_code=result.status_code,
            is_successful=result.is_successful,
        )
        return result

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def _to_result(response: httpx.Response) -> BroadcastResult:
        status = response.status_code
        if status == 200:
            body = BroadcastStatusBody.model_validate(response.json())
            return BroadcastResult(is_successful=True, message=body.status, status_code=status)
        if status in (401, 500):
            body_message = BroadcastMessageBody.model_validate(response.json())
            return BroadcastResult(
                is_successful=False, message=body_message.message, status_code=status
            )
        if status == 422:
            body_validation = BroadcastValidationBody.model_validate(response.json())
            return BroadcastResult(
                is_successful=False,
                message=body_validation.message,
                errors=body_validation.errors,
                status_code=status,
            )
        return BroadcastResult(
            is_successful=False, message=UNKNOWN_RESULT_MESSAGE, status_code=status
        )


__all__ = ["BroadcastClient", "UNKNOWN_RESULT_MESSAGE"]
