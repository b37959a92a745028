"""Base schemas with common configuration."""
from datetime import datetime, UTC

from pydantic import BaseModel, ConfigDict, model_serializer
from pydantic.alias_generators import to_camel


def serialize_datetime_utc(dt: datetime) -> str:
    """
    Serialize datetime to ISO 8601 with explicit UTC timezone.

    SQLite hands back naive datetimes, so they are treated as UTC. The ``Z``
    suffix lets JavaScript's Date constructor read the value correctly.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace('+00:00', 'Z')


def _convert(value):
    if isinstance(value, datetime):
        return serialize_datetime_utc(value)
    if isinstance(value, list):
        return [_convert(item) for item in value]
    if isinstance(value, dict):
        return {key: _convert(item) for key, item in value.items()}
    return value


class BaseSchema(BaseModel):
    """Base schema for API responses read from ORM objects."""

    model_config = ConfigDict(
        from_attributes=True,
    )

    @model_serializer(mode="wrap")
    def serialize_model(self, handler):
        """Serialize model values with UTC datetime handling."""
        data = handler(self)
        return {key: _convert(value) for key, value in data.items()}


class CamelSchema(BaseSchema):
    """Schema exchanged with camelCase keys.

    Requests may use either camelCase or snake_case names; responses are
    written in camelCase.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )
