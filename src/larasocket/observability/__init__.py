"""Observability module for the Larasocket client.

This module provides structured logging utilities shared by every component
of the client.

Example:
    >>> from larasocket.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("larasocket.client.message_received", length=42)
"""

from larasocket.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
]
