"""structlog setup shared by every Larasocket component.

Client code logs through ``get_logger`` with dotted event names such as
``larasocket.manager.connected``. Lines go through stdlib ``logging``, so an
application that already configures handlers keeps control of them. The
first ``get_logger`` call installs a default handler if nothing else has.

Output is tuned with environment variables:

- ``LARASOCKET_LOG_FORMAT``: ``console`` (colored, default) or ``json``
- ``LARASOCKET_LOG_LEVEL``: ``DEBUG``, ``INFO`` (default), ``WARNING``, ``ERROR``
- ``LARASOCKET_SERVICE_NAME``: value of the ``service`` key on every line
- ``LARASOCKET_DEBUG``: ``1``/``true`` logs link and subscribe payloads
  verbatim; by default their token fields are masked

Example:
    >>> from larasocket.observability.logging import configure_logging, get_logger
    >>> configure_logging(log_format="json", log_level="DEBUG")
    >>> get_logger(__name__).bind(name="orders").info("larasocket.client.ready")
"""

import logging
import os
import sys
from typing import Any, TextIO

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "larasocket-client"

ENV_LOG_FORMAT = "LARASOCKET_LOG_FORMAT"
ENV_LOG_LEVEL = "LARASOCKET_LOG_LEVEL"
ENV_SERVICE_NAME = "LARASOCKET_SERVICE_NAME"
ENV_DEBUG = "LARASOCKET_DEBUG"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Matched as case-insensitive substrings of a key
_SECRET_KEY_PARTS = frozenset({"password", "token", "secret", "authorization", "auth"})
_TRUTHY = frozenset({"true", "1", "yes", "on"})

_logging_configured = False


def _env(name: str, default: str) -> str:
    return os.environ.get(name, default)


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in _SECRET_KEY_PARTS)


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, list):
        return [sanitize_for_logging(item) if isinstance(item, dict) else item for item in value]
    return value


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Copy ``data`` with credential-like values masked.

    A relay request carries the API token in clear text, so any key that
    looks like a credential (``token``, ``auth``, ``password``...) is
    replaced with ``REDACTED_PLACEHOLDER``. Nested objects, and objects
    inside lists, are masked too.

    Example:
        >>> sanitize_for_logging({"action": "link", "token": "secret123"})
        {'action': 'link', 'token': '***REDACTED***'}
    """
    if not data:
        return {}
    return {
        key: REDACTED_PLACEHOLDER if _is_secret(key) else _mask(value)
        for key, value in data.items()
    }


def is_debug_mode() -> bool:
    """True when ``LARASOCKET_DEBUG`` asks for unmasked payloads."""
    return _env(ENV_DEBUG, "").strip().lower() in _TRUTHY


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route structlog through a single root handler.

    Arguments left as None fall back to the ``LARASOCKET_*`` variables and
    then to the module defaults. Runs once unless ``force`` is set, so
    library code can call it freely.

    Args:
        log_format: ``"json"`` or ``"console"``
        log_level: Minimum level name
        service_name: Bound as ``service`` on every line
        force: Replace an earlier configuration
        stream: Handler target; stdout when omitted. The CLI passes stderr
            so that logs never mix with command output.
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = (log_format or _env(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)).lower()
    log_level = (log_level or _env(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    service_name = service_name or _env(ENV_SERVICE_NAME, DEFAULT_SERVICE_NAME)

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level))

    structlog.contextvars.bind_contextvars(service=service_name)
    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for module ``name``; configures defaults on first use.

    Components bind the client name once, e.g.
    ``get_logger(__name__).bind(name=client_name)``, so every line of a
    multi-client process says which client wrote it.
    """
    if not _logging_configured:
        configure_logging()
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Add keys to every later log line in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
