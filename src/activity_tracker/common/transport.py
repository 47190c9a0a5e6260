"""Transport layer between the pipeline and the broker.

The consume loop and the producer only see the ``MessageReader`` and
``MessageWriter`` protocols. The aiokafka-backed implementations here are
the production transports; tests substitute in-memory fakes.

Every broker failure surfaces as ``TransportError`` so callers never need
to know about aiokafka's exception types.
"""

import asyncio
import logging
from typing import Any, Protocol

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError
from aiokafka.structs import TopicPartition

from activity_tracker.common.kafka_config import build_connection_config
from activity_tracker.common.metrics import update_connection_status
from activity_tracker.common.types import (
    OutboundMessage,
    PipelineMessage,
    ProduceResult,
    from_consumer_record,
)
from config.config import KafkaConfig
from core.errors.exceptions import TransportError
from core.utils import generate_worker_id

logger = logging.getLogger(__name__)

# aiokafka raises its own hierarchy plus plain OS errors from the socket layer
BROKER_ERRORS = (KafkaError, OSError)


class MessageReader(Protocol):
    """Source of messages for a single topic within a consumer group."""

    async def fetch_message(self) -> PipelineMessage:
        """Block until the next message is available."""
        ...

    async def commit(self, message: PipelineMessage) -> None:
        """Mark ``message`` as processed for the consumer group."""
        ...

    async def close(self) -> None:
        ...


class MessageWriter(Protocol):
    """Sink for serialized messages."""

    async def write_messages(self, *messages: OutboundMessage) -> list[ProduceResult]:
        """Write all messages, preserving order within each partition."""
        ...

    async def close(self) -> None:
        ...


class KafkaMessageReader:
    """MessageReader backed by an AIOKafkaConsumer subscribed to one topic.

    The consumer is started lazily on the first fetch. If starting fails the
    half-built client is discarded and the next fetch tries again, so a
    broker that is down at startup is handled by the caller's fetch backoff.
    """

    # Optional consumer config keys forwarded to AIOKafkaConsumer if present
    _OPTIONAL_CONSUMER_KEYS = (
        "heartbeat_interval_ms",
        "fetch_min_bytes",
        "fetch_max_wait_ms",
        "max_partition_fetch_bytes",
        "isolation_level",
    )

    def __init__(
        self,
        config: KafkaConfig,
        topic: str,
        group_id: str | None = None,
        client_id: str | None = None,
    ):
        self.config = config
        self.topic = topic
        self.group_id = group_id or config.group_id
        self.client_id = client_id or generate_worker_id(
            f"{config.client_id_prefix}-{topic}"
        )
        self._consumer: AIOKafkaConsumer | None = None

    def _build_kafka_config(self) -> dict[str, Any]:
        settings = self.config.consumer
        cfg = build_connection_config(self.config, self.client_id)
        cfg.update(
            {
                "group_id": self.group_id,
                "enable_auto_commit": False,
                "auto_offset_reset": settings.get("auto_offset_reset", "earliest"),
                "max_poll_interval_ms": settings.get("max_poll_interval_ms", 300000),
                "session_timeout_ms": settings.get("session_timeout_ms", 30000),
            }
        )
        for key in self._OPTIONAL_CONSUMER_KEYS:
            if key in settings:
                cfg[key] = settings[key]
        return cfg

    @property
    def is_started(self) -> bool:
        return self._consumer is not None

    async def _ensure_started(self) -> AIOKafkaConsumer:
        if self._consumer is not None:
            return self._consumer

        logger.info(
            "Starting topic reader",
            extra={"topic": self.topic, "consumer_group": self.group_id, "client_id": self.client_id},
        )
        consumer = AIOKafkaConsumer(self.topic, **self._build_kafka_config())
        try:
            await consumer.start()
        except BROKER_ERRORS as e:
            try:
                await consumer.stop()
            except BROKER_ERRORS:
                logger.debug("Ignoring error while discarding unstarted consumer", exc_info=True)
            raise TransportError(
                f"failed to connect reader for topic {self.topic}", topic=self.topic, cause=e
            ) from e

        self._consumer = consumer
        update_connection_status(f"consumer:{self.topic}", connected=True)
        return consumer

    async def fetch_message(self) -> PipelineMessage:
        consumer = await self._ensure_started()
        try:
            record = await consumer.getone()
        except BROKER_ERRORS as e:
            raise TransportError(
                f"failed to fetch message from topic {self.topic}", topic=self.topic, cause=e
            ) from e
        return from_consumer_record(record)

    async def commit(self, message: PipelineMessage) -> None:
        if self._consumer is None:
            raise TransportError(
                f"cannot commit on topic {self.topic}: reader not started", topic=self.topic
            )

        # Committed offset is the next one to read
        tp = TopicPartition(message.topic, message.partition)
        try:
            await self._consumer.commit({tp: message.offset + 1})
        except BROKER_ERRORS as e:
            raise TransportError(
                f"failed to commit offset {message.offset} on {message.topic}[{message.partition}]",
                topic=message.topic,
                cause=e,
            ) from e

    async def close(self) -> None:
        consumer, self._consumer = self._consumer, None
        if consumer is None:
            return

        try:
            await consumer.stop()
        except BROKER_ERRORS as e:
            raise TransportError(
                f"failed to stop reader for topic {self.topic}", topic=self.topic, cause=e
            ) from e
        finally:
            update_connection_status(f"consumer:{self.topic}", connected=False)


class KafkaMessageWriter:
    """MessageWriter backed by a single AIOKafkaProducer, started lazily."""

    def __init__(self, config: KafkaConfig, client_id: str | None = None):
        self.config = config
        self.client_id = client_id or generate_worker_id(f"{config.client_id_prefix}-producer")
        self.producer_config = config.producer
        self._producer: AIOKafkaProducer | None = None
        self._start_lock = asyncio.Lock()

    def _resolve_acks_and_idempotence(self) -> tuple[Any, bool]:
        """Resolve acks value and idempotence setting, enforcing mutual constraints."""
        acks_value = self.producer_config.get("acks", "all")
        if isinstance(acks_value, str) and acks_value.lstrip("-").isdigit():
            acks_value = int(acks_value)

        enable_idempotence = self.producer_config.get("enable_idempotence", True)
        if enable_idempotence and acks_value not in ("all", -1):
            logger.warning(
                "Overriding acks to 'all' because enable_idempotence=True requires it",
                extra={"client_id": self.client_id},
            )
            acks_value = "all"

        return acks_value, enable_idempotence

    def _build_kafka_config(self) -> dict[str, Any]:
        acks_value, enable_idempotence = self._resolve_acks_and_idempotence()
        cfg = build_connection_config(self.config, self.client_id)
        cfg.update(
            {
                "acks": acks_value,
                "enable_idempotence": enable_idempotence,
                "retry_backoff_ms": self.producer_config.get("retry_backoff_ms", 100),
            }
        )
        for key in ("linger_ms", "max_batch_size", "max_request_size"):
            if key in self.producer_config:
                cfg[key] = self.producer_config[key]
        if "compression_type" in self.producer_config:
            compression = self.producer_config["compression_type"]
            cfg["compression_type"] = None if compression in (None, "none") else compression
        return cfg

    async def _ensure_started(self) -> AIOKafkaProducer:
        async with self._start_lock:
            if self._producer is not None:
                return self._producer

            producer = AIOKafkaProducer(**self._build_kafka_config())
            try:
                await producer.start()
            except BROKER_ERRORS as e:
                try:
                    await producer.stop()
                except BROKER_ERRORS:
                    logger.debug("Ignoring error while discarding unstarted producer", exc_info=True)
                raise TransportError("failed to connect writer", cause=e) from e

            self._producer = producer
            update_connection_status("producer", connected=True)
            logger.info(
                "Topic writer started",
                extra={
                    "client_id": self.client_id,
                    "bootstrap_servers": self.config.bootstrap_servers,
                },
            )
            return producer

    async def write_messages(self, *messages: OutboundMessage) -> list[ProduceResult]:
        if not messages:
            return []

        producer = await self._ensure_started()

        # Enqueue everything before waiting so the batch is sent together
        futures = []
        try:
            for m in messages:
                futures.append(await producer.send(m.topic, value=m.value, key=m.key))
        except BROKER_ERRORS as e:
            # Already-enqueued messages are still in flight; collect their outcomes
            await asyncio.gather(*futures, return_exceptions=True)
            raise TransportError(
                "failed to write messages", topic=messages[0].topic, cause=e
            ) from e

        outcomes = await asyncio.gather(*futures, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                raise TransportError(
                    "failed to write messages", topic=messages[0].topic, cause=outcome
                ) from outcome

        return [
            ProduceResult(topic=md.topic, partition=md.partition, offset=md.offset)
            for md in outcomes
        ]

    async def close(self) -> None:
        producer, self._producer = self._producer, None
        if producer is None:
            return

        try:
            await producer.flush()
            await producer.stop()
        except BROKER_ERRORS as e:
            raise TransportError("failed to stop writer", cause=e) from e
        finally:
            update_connection_status("producer", connected=False)


__all__ = [
    "MessageReader",
    "MessageWriter",
    "KafkaMessageReader",
    "KafkaMessageWriter",
    "BROKER_ERRORS",
]
