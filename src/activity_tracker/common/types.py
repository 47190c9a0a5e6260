"""Broker-agnostic message types."""

from dataclasses import dataclass

__all__ = [
    "PipelineMessage",
    "OutboundMessage",
    "ProduceResult",
    "from_consumer_record",
]


@dataclass(frozen=True)
class PipelineMessage:
    """Message received from a topic."""

    topic: str
    partition: int
    offset: int
    timestamp: int
    key: bytes | None = None
    value: bytes | None = None
    headers: list[tuple[str, bytes]] | None = None

    @property
    def key_str(self) -> str | None:
        if self.key is None:
            return None
        return self.key.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class OutboundMessage:
    """Serialized message waiting to be written."""

    topic: str
    key: bytes | None
    value: bytes


@dataclass(frozen=True)
class ProduceResult:
    """Confirmation of a published message."""

    topic: str
    partition: int
    offset: int


def from_consumer_record(record) -> PipelineMessage:
    """Convert aiokafka ConsumerRecord to PipelineMessage."""
    headers = None
    if getattr(record, "headers", None):
        headers = [(k, v) for k, v in record.headers]

    return PipelineMessage(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        timestamp=record.timestamp,
        key=record.key,
        value=record.value,
        headers=headers,
    )
