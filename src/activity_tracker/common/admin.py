"""One-time topic bootstrap.

Creates every topic in the registry with its partition count. Topics that
already exist are left untouched, so bootstrap is safe to run on every
deploy.
"""

import logging

from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import TopicAlreadyExistsError, for_code

from activity_tracker.common.kafka_config import build_connection_config
from activity_tracker.common.transport import BROKER_ERRORS
from activity_tracker.schemas.topics import DEFAULT_TOPIC_REGISTRY, EventTopicRegistry
from config.config import KafkaConfig
from core.errors.exceptions import PermanentError, TransportError
from core.resilience.retry import RetryConfig, with_retry_async
from core.utils import generate_worker_id

logger = logging.getLogger(__name__)

BOOTSTRAP_RETRY = RetryConfig(max_attempts=5, base_delay=2.0, max_delay=30.0)


def _topic_errors(response) -> list[tuple[str, int, str | None]]:
    """Normalize CreateTopicsResponse.topic_errors across protocol versions."""
    errors = []
    for entry in getattr(response, "topic_errors", None) or []:
        name, code = entry[0], entry[1]
        message = entry[2] if len(entry) > 2 else None
        errors.append((name, code, message))
    return errors


async def _create_missing_topics(
    config: KafkaConfig,
    registry: EventTopicRegistry,
) -> list[str]:
    admin = AIOKafkaAdminClient(
        **build_connection_config(config, generate_worker_id(f"{config.client_id_prefix}-admin"))
    )
    try:
        await admin.start()
    except BROKER_ERRORS as e:
        try:
            await admin.close()
        except BROKER_ERRORS:
            logger.debug("Ignoring error while discarding unstarted admin client", exc_info=True)
        raise TransportError("failed to connect admin client", cause=e) from e

    try:
        existing = set(await admin.list_topics())
        missing = [spec for spec in registry.specs() if spec.name not in existing]
        for spec in registry.specs():
            if spec.name in existing:
                logger.info("Topic already exists", extra={"topic": spec.name})

        if not missing:
            return []

        response = await admin.create_topics(
            [
                NewTopic(
                    name=spec.name,
                    num_partitions=spec.partitions,
                    replication_factor=config.replication_factor,
                )
                for spec in missing
            ]
        )

        created = []
        failures = {name: (code, message) for name, code, message in _topic_errors(response) if code}
        for spec in missing:
            if spec.name not in failures:
                created.append(spec.name)
                logger.info(
                    "Created topic",
                    extra={"topic": spec.name, "partitions": spec.partitions},
                )
                continue

            code, message = failures[spec.name]
            error_class = for_code(code)
            if issubclass(error_class, TopicAlreadyExistsError):
                logger.info("Topic created concurrently", extra={"topic": spec.name})
                continue
            raise PermanentError(
                f"failed to create topic {spec.name}: {error_class.__name__}"
                + (f" ({message})" if message else ""),
                context={"topic": spec.name, "error_code": code},
            )

        return created
    except BROKER_ERRORS as e:
        raise TransportError("topic bootstrap request failed", cause=e) from e
    finally:
        await admin.close()


async def create_topics(
    config: KafkaConfig,
    registry: EventTopicRegistry = DEFAULT_TOPIC_REGISTRY,
    retry_config: RetryConfig | None = None,
) -> list[str]:
    """Create every registry topic that does not exist yet.

    Connection failures are retried; a topic-level rejection (other than
    "already exists") is not.

    Returns:
        Names of the topics created by this call
    """
    logger.info(
        "Bootstrapping topics",
        extra={
            "topics": registry.topics(),
            "bootstrap_servers": config.bootstrap_servers,
        },
    )
    create = with_retry_async(config=retry_config or BOOTSTRAP_RETRY)(_create_missing_topics)
    return await create(config, registry)


__all__ = [
    "create_topics",
    "BOOTSTRAP_RETRY",
]
