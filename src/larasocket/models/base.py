"""Base Pydantic model configuration for Larasocket wire models.

Outbound wire models inherit from LarasocketBaseModel:
- Immutability (frozen=True) for thread-safety and predictability
- Strict validation (extra="forbid") to catch typos and invalid fields
- Flexible field naming (populate_by_name=True) for alias support

Inbound models that must tolerate unknown server fields inherit from
LarasocketInboundModel, which ignores extra fields instead.
"""

from pydantic import BaseModel, ConfigDict


class LarasocketBaseModel(BaseModel):
    """Base model for messages the client builds and sends.

    Example:
        >>> class Ping(LarasocketBaseModel):
        ...     action: str
        >>> Ping(action="ping").model_dump_json()
        '{"action":"ping"}'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )


class LarasocketInboundModel(BaseModel):
    """Base model for payloads received from the relay or its HTTP API."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
