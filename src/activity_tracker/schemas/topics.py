"""
Event type to topic registry.

Every ``UserEventType`` is routed to exactly one topic, and no two types
share a topic. The registry is checked when it is built and cannot be
changed afterwards, so lookups never have to handle a missing entry.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from activity_tracker.schemas.events import UserEventType
from core.errors.exceptions import UnknownEventTypeError


@dataclass(frozen=True)
class TopicSpec:
    """A topic name and the partition count it is created with."""

    name: str
    partitions: int = 1

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("topic name cannot be empty")
        if self.partitions < 1:
            raise ValueError(f"topic {self.name}: partitions must be >= 1, got {self.partitions}")


class EventTopicRegistry(Mapping):
    """Total, injective mapping from event type to topic."""

    def __init__(self, topics: Mapping[UserEventType, TopicSpec]):
        missing = [t for t in UserEventType if t not in topics]
        if missing:
            raise ValueError(f"no topic registered for event types: {[t.value for t in missing]}")

        extra = [k for k in topics if not isinstance(k, UserEventType)]
        if extra:
            raise ValueError(f"unknown event types in topic registry: {extra}")

        names = [spec.name for spec in topics.values()]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"topics shared by more than one event type: {duplicates}")

        # Enum declaration order, regardless of the caller's ordering
        self._topics = MappingProxyType({t: topics[t] for t in UserEventType})

    def __getitem__(self, event_type: UserEventType) -> TopicSpec:
        return self._topics[event_type]

    def __iter__(self) -> Iterator[UserEventType]:
        return iter(self._topics)

    def __len__(self) -> int:
        return len(self._topics)

    def __repr__(self) -> str:
        pairs = ", ".join(f"{t.value}->{s.name}" for t, s in self._topics.items())
        return f"EventTopicRegistry({pairs})"

    def topic_for(self, event_type: UserEventType | str) -> str:
        """Topic name for an event type.

        Raises:
            UnknownEventTypeError: the type is not a registered UserEventType
        """
        try:
            return self._topics[UserEventType(event_type)].name
        except (KeyError, ValueError) as e:
            raise UnknownEventTypeError(event_type, cause=e) from e

    def topics(self) -> list[str]:
        """All topic names, in event type declaration order."""
        return [spec.name for spec in self._topics.values()]

    def specs(self) -> list[TopicSpec]:
        return list(self._topics.values())


DEFAULT_TOPIC_REGISTRY = EventTopicRegistry(
    {
        UserEventType.LOGIN: TopicSpec("user-logins", partitions=3),
        UserEventType.PAGE_VIEWS: TopicSpec("page-views", partitions=2),
        UserEventType.USER_ACTION: TopicSpec("user-actions", partitions=1),
    }
)


__all__ = [
    "TopicSpec",
    "EventTopicRegistry",
    "DEFAULT_TOPIC_REGISTRY",
]
