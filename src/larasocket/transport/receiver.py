"""Receive side of one connection epoch.

``FrameReceiver.run`` reads frame chunks from a transport, reassembles
fragmented messages and hands each complete ``ResponseMessage`` to a
callback. It returns the close frame when the server closes the connection
and raises on any other failure; the connection manager decides what
either outcome means.
"""

from __future__ import annotations

from collections.abc import Callable

from larasocket.models.enums import MessageType
from larasocket.models.messages import ResponseMessage
from larasocket.observability import get_logger
from larasocket.transport.factory import Frame, Transport

logger = get_logger(__name__)


class FrameReceiver:
    """Reassembles frames from one transport into complete messages.

    Args:
        transport: The epoch's transport
        on_message: Called once per decoded message, in arrival order
        text_conversion_enabled: When False, text messages are delivered as
            binary ``ResponseMessage`` values carrying the UTF-8 bytes
    """

    def __init__(
        self,
        transport: Transport,
        on_message: Callable[[ResponseMessage], None],
        text_conversion_enabled: bool = True,
    ) -> None:
        self._transport = transport
        self._on_message = on_message
        self._text_conversion_enabled = text_conversion_enabled
        self._server_closed = False

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def server_closed(self) -> bool:
        return self._server_closed

    async def run(self) -> Frame:
        """Read until the server sends a close frame, then return it."""
        buffer = bytearray()
        message_type: MessageType | None = None
        while True:
            frame = await self._transport.receive()
            if frame.message_type is MessageType.CLOSE:
                self._server_closed = True
                logger.debug(
                    "larasocket.receiver.close_frame",
                    close_code=frame.close_code,
                    close_reason=frame.close_reason,
                )
                return frame

            if message_type is None:
                message_type = frame.message_type
            buffer.extend(frame.data)
            if not frame.end_of_message:
                continue

            message = self._decode(message_type, bytes(buffer))
            buffer.clear()
            message_type = None
            if message is not None:
                self._on_message(message)

    def _decode(self, message_type: MessageType, data: bytes) -> ResponseMessage | None:
        if message_type is MessageType.BINARY or not self._text_conversion_enabled:
            return ResponseMessage.binary_message(data)
        try:
            return ResponseMessage.text_message(data.decode("utf-8"))
        except UnicodeDecodeError as exc:
            logger.warning(
                "larasocket.receiver.decode_error",
                size=len(data),
                error=str(exc),
            )
            return None


__all__ = ["FrameReceiver"]
