"""Consumer pool: one consumer lane per registered event topic.

Lanes share nothing but the read-only topic registry and the shutdown
event. A lane that blows up is logged and ends on its own; the remaining
lanes keep consuming until shutdown.
"""

import asyncio
import logging
from collections.abc import Callable

from activity_tracker.common.consumer import ConsumerStats, EventConsumer
from activity_tracker.common.metrics import active_lanes_gauge
from activity_tracker.schemas.events import UserEvent
from activity_tracker.schemas.topics import DEFAULT_TOPIC_REGISTRY, EventTopicRegistry
from activity_tracker.services.sessions import SessionRepository
from core.errors.exceptions import CloseError
from core.logging import set_log_context

logger = logging.getLogger(__name__)

ConsumerFactory = Callable[[str], EventConsumer]


class EventConsumerService:
    """Runs every topic's consumer concurrently and forwards events to a sink."""

    def __init__(
        self,
        session_repository: SessionRepository,
        consumer_factory: ConsumerFactory,
        registry: EventTopicRegistry = DEFAULT_TOPIC_REGISTRY,
    ):
        self.session_repository = session_repository
        self.registry = registry
        self.consumers: dict[str, EventConsumer] = {
            topic: consumer_factory(topic) for topic in registry.topics()
        }

        logger.info(
            "Initialized event consumer service",
            extra={"topics": list(self.consumers), "consumer_count": len(self.consumers)},
        )

    async def _forward(self, event: UserEvent) -> None:
        await self.session_repository.track_user_action(event)

    async def _run_lane(
        self,
        topic: str,
        consumer: EventConsumer,
        shutdown_event: asyncio.Event,
    ) -> ConsumerStats | None:
        set_log_context(lane=topic)
        active_lanes_gauge.inc()
        try:
            return await consumer.consume_messages(shutdown_event, self._forward)
        except Exception:
            logger.error(
                "Consumer lane terminated unexpectedly",
                extra={"topic": topic},
                exc_info=True,
            )
            return None
        finally:
            active_lanes_gauge.dec()

    async def listen_for_user_events(
        self, shutdown_event: asyncio.Event
    ) -> dict[str, ConsumerStats | None]:
        """Consume all topics until ``shutdown_event`` is set.

        Returns only after every lane has stopped, with each lane's counters
        (None for a lane that died on an unexpected error). If this coroutine
        is cancelled, every lane is cancelled and awaited before the
        cancellation propagates.
        """
        tasks = {
            topic: asyncio.create_task(
                self._run_lane(topic, consumer, shutdown_event),
                name=f"consumer-{topic}",
            )
            for topic, consumer in self.consumers.items()
        }
        logger.info("Listening for user events", extra={"topics": list(tasks)})

        try:
            await asyncio.gather(*tasks.values())
        except asyncio.CancelledError:
            logger.info("Event listener cancelled, stopping all lanes")
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        logger.info("All consumer lanes stopped")
        return {topic: task.result() for topic, task in tasks.items()}

    async def close(self) -> None:
        """Close every consumer, then raise the first close failure if any."""
        first_error: CloseError | None = None
        for topic, consumer in self.consumers.items():
            try:
                await consumer.close()
            except CloseError as e:
                logger.error(
                    "Failed to close consumer",
                    extra={"topic": topic, "error_message": str(e)},
                )
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise first_error


__all__ = [
    "ConsumerFactory",
    "EventConsumerService",
]
