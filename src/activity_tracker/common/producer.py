"""Message producer that serializes payloads and writes them in one batch."""

import json
import logging
import time
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from activity_tracker.common.metrics import (
    record_messages_produced,
    record_producer_error,
)
from activity_tracker.common.transport import KafkaMessageWriter, MessageWriter
from activity_tracker.common.types import OutboundMessage, ProduceResult
from config.config import KafkaConfig
from core.errors.exceptions import CloseError, SerializationError
from core.utils import generate_worker_id
from core.utils.json_serializers import json_serializer

logger = logging.getLogger(__name__)


def serialize_payload(payload: Any) -> bytes:
    """Encode one payload as compact UTF-8 JSON.

    Pydantic models use their field aliases so the wire names match what
    consumers decode.

    Raises:
        SerializationError: the payload cannot be represented as JSON
    """
    try:
        if isinstance(payload, BaseModel):
            return payload.model_dump_json(by_alias=True).encode("utf-8")
        return json.dumps(
            payload,
            default=json_serializer,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        ).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError("failed to marshal json", cause=e) from e


class MessageProducer:
    """Publishes JSON payloads through a MessageWriter.

    A producer exclusively owns its writer for its whole lifetime.
    """

    def __init__(self, writer: MessageWriter, client_id: str | None = None):
        self.writer = writer
        self.client_id = client_id or generate_worker_id("producer")
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def publish(
        self,
        topic: str,
        key: str | bytes | None,
        payloads: Sequence[Any],
    ) -> list[ProduceResult]:
        """Serialize every payload and write them to ``topic`` in one call.

        Nothing is written if any payload fails to serialize. Messages keep
        the order of ``payloads``; all share ``key`` and therefore a partition.

        Raises:
            SerializationError: a payload could not be encoded
            TransportError: the writer failed; messages the broker already
                accepted are not rolled back
        """
        if self._closed:
            raise RuntimeError("Producer is closed")

        if not payloads:
            logger.warning("publish called with no payloads", extra={"topic": topic})
            return []

        key_bytes = key.encode("utf-8") if isinstance(key, str) else key

        try:
            messages = [
                OutboundMessage(topic=topic, key=key_bytes, value=serialize_payload(p))
                for p in payloads
            ]
        except SerializationError:
            record_producer_error(topic, "serialization")
            raise

        start_time = time.perf_counter()
        try:
            results = await self.writer.write_messages(*messages)
        except Exception as e:
            record_messages_produced(topic, len(messages), success=False)
            record_producer_error(topic, type(e).__name__)
            logger.error(
                "Failed to publish messages",
                extra={
                    "topic": topic,
                    "message_count": len(messages),
                    "error_message": str(e)[:500],
                },
            )
            raise

        record_messages_produced(topic, len(messages))
        logger.debug(
            "Published messages",
            extra={
                "topic": topic,
                "message_count": len(messages),
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return results

    async def close(self) -> None:
        """Release the writer. Calling close more than once is a no-op.

        Raises:
            CloseError: the writer failed to shut down cleanly
        """
        if self._closed:
            return
        self._closed = True

        try:
            await self.writer.close()
        except Exception as e:
            raise CloseError.for_writer(self.client_id, cause=e) from e

        logger.info("Producer closed", extra={"client_id": self.client_id})


def create_message_producer(config: KafkaConfig) -> MessageProducer:
    """Build a MessageProducer writing through aiokafka."""
    writer = KafkaMessageWriter(config)
    return MessageProducer(writer, client_id=writer.client_id)


__all__ = [
    "MessageProducer",
    "serialize_payload",
    "create_message_producer",
]
