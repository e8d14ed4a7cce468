"""
Base schema model for API payloads.

Provides camelCase aliases for the dashboard frontend, UTC normalisation of
incoming datetimes, and 'Z'-suffixed datetime serialization.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_serializer


def to_camel(string: str) -> str:
    """
    Convert snake_case to camelCase.

    Example:
        >>> to_camel("used_seats")
        'usedSeats'
        >>> to_camel("end_at")
        'endAt'
    """
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-naive UTC, the storage convention.

    Aware values are converted to UTC first; naive values are assumed to be
    UTC already.
    """
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """
    Serialize datetime to ISO 8601 with the 'Z' UTC indicator.

    Returns:
        e.g. "2025-12-18T14:30:00Z", or None if input is None
    """
    if dt is None:
        return None
    return to_naive_utc(dt).isoformat() + "Z"


class HTTPSchemaModel(BaseModel):
    """
    Base model for all HTTP API schemas.

    - camelCase aliases, snake_case accepted on input
    - from_attributes for ORM objects
    - datetimes serialized with a 'Z' suffix
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap", when_used="json")
    @classmethod
    def serialize_any_datetime(cls, value: Any, handler: Any) -> Any:
        if isinstance(value, datetime):
            return serialize_datetime(value)
        return handler(value)
