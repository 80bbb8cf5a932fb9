"""Shared pytest fixtures for Larasocket client tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from larasocket.observability import clear_context


@pytest.fixture(autouse=True)
def _clear_log_context() -> Iterator[None]:
    """Keep structlog context variables from leaking between tests."""
    yield
    clear_context()
