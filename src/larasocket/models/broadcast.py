"""Models for the relay's HTTP broadcast endpoint.

The endpoint accepts form fields ``event, channels, payload, connection_id``
and answers with one of these bodies:

- 200: {"status": "..."}
- 401 / 500: {"message": "..."}
- 422: {"message": "...", "errors": {"channels": [...], "event": [...]}}
"""

from __future__ import annotations

from pydantic import Field

from larasocket.models.base import LarasocketBaseModel, LarasocketInboundModel


class BroadcastMessage(LarasocketBaseModel):
    """A message to publish to one or more channels.

    Attributes:
        event: Event name delivered to subscribers
        channels: Channel name (or comma-separated names) to publish to
        payload: Serialized payload, opaque to the client
        connection_id: Sender session id; the relay skips this connection
    """

    event: str = Field(..., min_length=1)
    channels: str = Field(..., min_length=1)
    payload: str = ""
    connection_id: str | None = None

    def to_form(self) -> dict[str, str]:
        """Return the form fields posted to the broadcast endpoint."""
        return {
            "event": self.event,
            "channels": self.channels,
            "payload": self.payload,
            "connection_id": self.connection_id or "",
        }


class BroadcastErrors(LarasocketInboundModel):
    """Per-field validation errors returned with HTTP 422."""

    channels: list[str] | None = None
    event: list[str] | None = None


class BroadcastStatusBody(LarasocketInboundModel):
    status: str | None = None


class BroadcastMessageBody(LarasocketInboundModel):
    message: str | None = None


class BroadcastValidationBody(LarasocketInboundModel):
    message: str | None = None
    errors: BroadcastErrors | None = None


class BroadcastResult(LarasocketInboundModel):
    """Outcome of a broadcast call. Failures are values, never exceptions.

    Attributes:
        is_successful: True only for HTTP 200
        message: Status text on success, error message otherwise
        errors: Field errors for HTTP 422, else None
        status_code: HTTP status, None when the request never completed
    """

    is_successful: bool
    message: str | None = None
    errors: BroadcastErrors | None = None
    status_code: int | None = None
