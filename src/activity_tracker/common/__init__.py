"""
Shared broker plumbing: transports, consumer loop, producer, metrics.
"""

from activity_tracker.common.consumer import (
    ConsumerState,
    ConsumerStats,
    EventConsumer,
    create_event_consumer,
)
from activity_tracker.common.producer import MessageProducer, create_message_producer
from activity_tracker.common.transport import (
    KafkaMessageReader,
    KafkaMessageWriter,
    MessageReader,
    MessageWriter,
)
from activity_tracker.common.types import OutboundMessage, PipelineMessage, ProduceResult

__all__ = [
    "ConsumerState",
    "ConsumerStats",
    "EventConsumer",
    "create_event_consumer",
    "MessageProducer",
    "create_message_producer",
    "MessageReader",
    "MessageWriter",
    "KafkaMessageReader",
    "KafkaMessageWriter",
    "PipelineMessage",
    "OutboundMessage",
    "ProduceResult",
]
