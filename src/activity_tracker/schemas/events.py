"""
User activity event schemas.

Contains the Pydantic model for user activity events exchanged on the
activity topics, plus the codec used on both sides of the wire.

Wire format: a compact UTF-8 JSON object
    {"userID": "42", "timestamp": "2024-01-01T00:00:00Z", "type": "LOGIN"}
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.errors.exceptions import DecodeError


class UserEventType(StrEnum):
    """Kind of user activity. The value is the wire representation."""

    LOGIN = "LOGIN"
    PAGE_VIEWS = "PAGE-VIEWS"
    USER_ACTION = "USER-ACTION"


class UserEvent(BaseModel):
    """Schema for a single user activity event.

    Immutable once built; two events with the same fields compare equal.

    Attributes:
        user_id: Identifier of the acting user (wire name ``userID``)
        timestamp: When the activity happened. Naive datetimes are taken as UTC.
        type: Activity kind; must be a registered ``UserEventType``

    Example:
        >>> event = UserEvent(
        ...     user_id="42",
        ...     timestamp=datetime(2024, 1, 1, tzinfo=UTC),
        ...     type=UserEventType.LOGIN,
        ... )
        >>> encode_user_event(event)
        b'{"userID":"42","timestamp":"2024-01-01T00:00:00Z","type":"LOGIN"}'
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: str = Field(default="", alias="userID", description="Acting user id")
    timestamp: datetime = Field(..., description="Time of the activity")
    type: UserEventType = Field(..., description="Activity kind")

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v):
        """Accept numeric ids from producers that send them unquoted."""
        if isinstance(v, bool):
            raise ValueError("userID must be a string")
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


def encode_user_event(event: UserEvent) -> bytes:
    """Serialize an event to its canonical wire form."""
    return event.model_dump_json(by_alias=True).encode("utf-8")


def decode_user_event(data: bytes | str | None) -> UserEvent:
    """Parse wire bytes into a UserEvent.

    Raises:
        DecodeError: payload is empty, not JSON, missing ``timestamp`` or
            ``type``, or carries an unregistered event type
    """
    if data is None or len(data) == 0:
        raise DecodeError("failed to unmarshal user event: empty payload")

    try:
        return UserEvent.model_validate_json(data)
    except ValidationError as e:
        raise DecodeError(
            "failed to unmarshal user event",
            cause=e,
            context={"error_count": e.error_count()},
        ) from e


__all__ = [
    "UserEventType",
    "UserEvent",
    "encode_user_event",
    "decode_user_event",
]
