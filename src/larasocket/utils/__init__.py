"""Utility modules for the Larasocket client.

This package contains helpers used across the client, such as log
sanitization of the relay token.
"""

__all__: list[str] = []
