"""Larasocket error taxonomy.

This module defines the closed set of error kinds raised by the client.
Every error carries a code following the ``larasocket:<area>/<kind>`` pattern,
a human-readable message, optional details and the underlying cause.

Propagation policy:
- Connection errors surface only through the disconnection stream unless the
  caller opted into a fail-fast variant (``start_or_fail``, ``reconnect_or_fail``).
- Stop failures are logged; ``stop_or_fail`` raises ``StopFailedError`` after
  the local state transition has completed.
- Any call on a disposed client raises ``ClientDisposedError``.
"""

from __future__ import annotations

from typing import Any


class LarasocketError(Exception):
    """Base exception for all Larasocket client errors.

    Attributes:
        code: Error code following the larasocket:... pattern
        message: Human-readable error message
        details: Optional additional error context
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class LarasocketConnectionError(LarasocketError):
    """Raised when a transport to the relay cannot be established.

    Only surfaced to callers of the fail-fast variants; otherwise the failure
    is reported as a ``DisconnectionInfo`` of type ``ERROR``.

    Attributes:
        url: Sanitized relay URL that failed to connect (if available)
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="larasocket:transport/connection",
            message=message,
            details={**({"url": url} if url else {}), **(details or {})},
            cause=cause,
        )
        self.url = url


class LarasocketProtocolError(LarasocketError):
    """Raised when the relay protocol does not progress as expected.

    Currently raised when a bounded wait for the handshake connection id
    expires before a subscription could be sent.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code="larasocket:protocol/handshake",
            message=message,
            details=details,
            cause=cause,
        )


class ClientDisposedError(LarasocketError):
    """Raised when an operation is attempted on a disposed client.

    Attributes:
        operation: Name of the rejected operation
    """

    def __init__(self, operation: str, details: dict[str, Any] | None = None) -> None:
        message = f"Client is already disposed, {operation} not possible"
        super().__init__(
            code="larasocket:client/disposed",
            message=message,
            details={"operation": operation, **(details or {})},
        )
        self.operation = operation


class StopFailedError(LarasocketError):
    """Raised by ``stop_or_fail`` when the close handshake itself fails.

    The client is marked stopped regardless; this error only reports that
    the remote side did not acknowledge the close cleanly.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(
            code="larasocket:client/stop_failed",
            message=message,
            cause=cause,
        )


class BadInputError(LarasocketError):
    """Raised when a caller passes an empty or missing payload or channel.

    Attributes:
        argument: Name of the offending argument
    """

    def __init__(self, argument: str, details: dict[str, Any] | None = None) -> None:
        message = f"Input '{argument}' must not be empty"
        super().__init__(
            code="larasocket:client/bad_input",
            message=message,
            details={"argument": argument, **(details or {})},
        )
        self.argument = argument


class InvalidTransitionError(LarasocketError):
    """Raised when attempting an invalid connection state transition.

    Attributes:
        from_state: The current connection state
        to_state: The attempted target state
    """

    def __init__(
        self, from_state: str, to_state: str, details: dict[str, Any] | None = None
    ) -> None:
        message = f"Invalid transition from '{from_state}' to '{to_state}'"
        super().__init__(
            code="larasocket:client/invalid_state",
            message=message,
            details={"from_state": from_state, "to_state": to_state, **(details or {})},
        )
        self.from_state = from_state
        self.to_state = to_state


__all__ = [
    "BadInputError",
    "ClientDisposedError",
    "InvalidTransitionError",
    "LarasocketConnectionError",
    "LarasocketError",
    "LarasocketProtocolError",
    "StopFailedError",
]
