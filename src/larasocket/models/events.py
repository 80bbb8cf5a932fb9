"""Lifecycle event payloads published on the reconnection and disconnection streams."""

from __future__ import annotations

from dataclasses import dataclass

from larasocket.models.enums import DisconnectionType, ReconnectionType


@dataclass(frozen=True, slots=True)
class ReconnectionInfo:
    """Emitted once per successful (re)connection."""

    type: ReconnectionType


@dataclass(slots=True)
class DisconnectionInfo:
    """Emitted once per disconnection.

    Listeners run synchronously while the event is published and may set the
    two cancel flags to veto the default behaviour:

    Attributes:
        type: Why the connection ended
        exception: Underlying error, if any
        close_status: Close code sent by the server (BY_SERVER only)
        close_status_description: Close reason sent by the server (BY_SERVER only)
        cancel_reconnection: Set to True to stop the client instead of reconnecting
        cancel_closing: Set to True on a BY_SERVER event to reconnect instead of closing
    """

    type: DisconnectionType
    exception: BaseException | None = None
    close_status: int | None = None
    close_status_description: str | None = None
    cancel_reconnection: bool = False
    cancel_closing: bool = False
