"""Publishing user activity events to their topics."""

import logging

from activity_tracker.common.producer import MessageProducer
from activity_tracker.common.types import ProduceResult
from activity_tracker.schemas.events import UserEvent
from activity_tracker.schemas.topics import DEFAULT_TOPIC_REGISTRY, EventTopicRegistry

logger = logging.getLogger(__name__)


class UserEventService:
    """Routes each event to the topic registered for its type.

    Events are keyed by the numeric user id, so all events of one user land
    on the same partition of a topic and stay ordered.
    """

    def __init__(
        self,
        producer: MessageProducer,
        registry: EventTopicRegistry = DEFAULT_TOPIC_REGISTRY,
    ):
        self.producer = producer
        self.registry = registry

    async def send_user_event(self, user_id: int, event: UserEvent) -> list[ProduceResult]:
        """Publish ``event`` keyed by ``user_id``.

        Raises:
            TypeError: user_id is not an integer
            UnknownEventTypeError: event.type has no registered topic
            SerializationError / TransportError: from the producer
        """
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise TypeError(f"user_id must be an int, got {type(user_id).__name__}")

        topic = self.registry.topic_for(event.type)
        results = await self.producer.publish(topic, str(user_id), [event])

        logger.debug(
            "Sent user event",
            extra={"topic": topic, "event_type": event.type.value, "user_id": str(user_id)},
        )
        return results


__all__ = ["UserEventService"]
