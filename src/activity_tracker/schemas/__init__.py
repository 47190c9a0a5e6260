"""Event schemas and topic routing."""

from activity_tracker.schemas.events import (
    UserEvent,
    UserEventType,
    decode_user_event,
    encode_user_event,
)
from activity_tracker.schemas.topics import (
    DEFAULT_TOPIC_REGISTRY,
    EventTopicRegistry,
    TopicSpec,
)

__all__ = [
    "UserEvent",
    "UserEventType",
    "encode_user_event",
    "decode_user_event",
    "TopicSpec",
    "EventTopicRegistry",
    "DEFAULT_TOPIC_REGISTRY",
]
