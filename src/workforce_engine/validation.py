"""Input coercion at the service boundary."""

from __future__ import annotations

from uuid import UUID

from workforce_engine.errors import ValidationError


def coerce_id(value: UUID | str | None, name: str) -> UUID:
    """Parse an id, raising ValidationError if it is missing or malformed."""
    if value is None or value == "":
        raise ValidationError(f"{name} is required")
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"{name} is not a valid id: {value!r}") from None
