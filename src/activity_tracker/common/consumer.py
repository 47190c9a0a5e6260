"""Per-topic event consumer with at-least-once delivery.

Each ``EventConsumer`` owns one ``MessageReader`` bound to a single topic
and runs a strictly sequential loop over it:

    fetch -> decode -> handle -> commit

An offset is committed only after the message decoded and the handler
returned without raising. Failed messages are left uncommitted and come
back after a restart or rebalance. No per-message failure ends the loop;
only the shutdown event does.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from activity_tracker.common.metrics import (
    CONSUMED_COMMIT_ERROR,
    CONSUMED_COMMITTED,
    CONSUMED_DECODE_ERROR,
    CONSUMED_HANDLER_ERROR,
    message_processing_duration_seconds,
    record_fetch_error,
    record_message_consumed,
)
from activity_tracker.common.transport import KafkaMessageReader, MessageReader
from activity_tracker.common.types import PipelineMessage
from activity_tracker.schemas.events import UserEvent, decode_user_event
from config.config import KafkaConfig
from core.errors.exceptions import CloseError, DecodeError, HandlerError
from core.logging import MessageLogContext, log_exception
from core.resilience.backoff import BackoffPolicy, ExponentialBackoff

logger = logging.getLogger(__name__)

EventHandler = Callable[[UserEvent], Awaitable[Any]]

_SHUTDOWN = object()


class ConsumerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ConsumerStats:
    """Counters for one run of the consume loop."""

    fetched: int = 0
    committed: int = 0
    decode_errors: int = 0
    handler_errors: int = 0
    commit_errors: int = 0
    fetch_errors: int = 0


async def _until_shutdown(awaitable: Awaitable, shutdown_event: asyncio.Event) -> Any:
    """Await ``awaitable`` unless the shutdown event fires first.

    Returns ``_SHUTDOWN`` (and cancels the pending operation) when shutdown
    wins. If both finish together the operation's outcome is kept.
    """
    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(shutdown_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        raise

    if task in done:
        waiter.cancel()
        return task.result()

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Operation failed while being cancelled for shutdown", exc_info=True)
    return _SHUTDOWN


class EventConsumer:
    """Consumes user events from one topic and dispatches them to a handler."""

    def __init__(
        self,
        reader: MessageReader,
        topic: str,
        group_id: str,
        backoff: BackoffPolicy | None = None,
    ):
        if not topic:
            raise ValueError("topic is required")

        self.reader = reader
        self.topic = topic
        self.group_id = group_id
        self.backoff = backoff or ExponentialBackoff()
        self.stats = ConsumerStats()
        self._state = ConsumerState.IDLE
        self._closed = False

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ConsumerState.RUNNING

    def _log_extra(self, **kwargs: Any) -> dict[str, Any]:
        return {"topic": self.topic, "consumer_group": self.group_id, **kwargs}

    async def consume_messages(
        self,
        shutdown_event: asyncio.Event,
        handler: EventHandler,
    ) -> ConsumerStats:
        """Run the consume loop until ``shutdown_event`` is set.

        Returns the counters for this run. Task cancellation is not
        intercepted and propagates to the caller.
        """
        if self._state is ConsumerState.RUNNING:
            raise RuntimeError(f"consumer for topic {self.topic} is already running")
        if self._state is ConsumerState.STOPPED:
            logger.warning("Consumer already stopped, not restarting", extra=self._log_extra())
            return self.stats

        self._state = ConsumerState.RUNNING
        logger.info("Consumer started", extra=self._log_extra())

        try:
            while not shutdown_event.is_set():
                message = await self._fetch(shutdown_event)
                if message is None:
                    continue
                await self._process_message(message, shutdown_event, handler)
        finally:
            self._state = ConsumerState.STOPPED
            logger.info(
                "Consumer stopped: fetched=%d committed=%d decode_errors=%d "
                "handler_errors=%d commit_errors=%d fetch_errors=%d",
                self.stats.fetched,
                self.stats.committed,
                self.stats.decode_errors,
                self.stats.handler_errors,
                self.stats.commit_errors,
                self.stats.fetch_errors,
                extra=self._log_extra(),
            )

        return self.stats

    async def _fetch(self, shutdown_event: asyncio.Event) -> PipelineMessage | None:
        try:
            result = await _until_shutdown(self.reader.fetch_message(), shutdown_event)
        except Exception as e:
            self.stats.fetch_errors += 1
            record_fetch_error(self.topic, self.group_id)
            log_exception(
                logger,
                e,
                "Failed to fetch message",
                level=logging.WARNING,
                include_traceback=False,
                **self._log_extra(consecutive_failures=self.stats.fetch_errors),
            )
            await self._pause(shutdown_event)
            return None

        if result is _SHUTDOWN:
            return None

        self.backoff.reset()
        self.stats.fetched += 1
        return result

    async def _pause(self, shutdown_event: asyncio.Event) -> None:
        """Wait out the backoff delay, returning early on shutdown."""
        delay = self.backoff.next_delay()
        if delay <= 0:
            # Still yield so a failing lane can't starve the others
            await asyncio.sleep(0)
            return

        logger.debug("Backing off before next fetch", extra=self._log_extra(delay_seconds=delay))
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
        except TimeoutError:
            pass

    async def _process_message(
        self,
        message: PipelineMessage,
        shutdown_event: asyncio.Event,
        handler: EventHandler,
    ) -> None:
        start_time = time.perf_counter()
        with MessageLogContext(
            topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            key=message.key_str,
            consumer_group=self.group_id,
        ):
            try:
                event = decode_user_event(message.value)
            except DecodeError as e:
                self.stats.decode_errors += 1
                record_message_consumed(self.topic, self.group_id, CONSUMED_DECODE_ERROR)
                log_exception(
                    logger,
                    e,
                    "Skipping undecodable message",
                    include_traceback=False,
                    **self._log_extra(),
                )
                return

            if not event.user_id and message.key_str:
                # Routing key is the decimal user id the event was sent under
                event = event.model_copy(update={"user_id": message.key_str})

            try:
                await handler(event)
            except Exception as e:
                self.stats.handler_errors += 1
                record_message_consumed(self.topic, self.group_id, CONSUMED_HANDLER_ERROR)
                error = HandlerError(
                    f"handler failed for {event.type.value} event", cause=e
                )
                log_exception(
                    logger,
                    error,
                    "Handler failed, message left uncommitted",
                    **self._log_extra(event_type=event.type.value, user_id=event.user_id),
                )
                return

            await self._commit(message, shutdown_event)

        message_processing_duration_seconds.labels(
            topic=self.topic, consumer_group=self.group_id
        ).observe(time.perf_counter() - start_time)

    async def _commit(self, message: PipelineMessage, shutdown_event: asyncio.Event) -> None:
        try:
            result = await _until_shutdown(self.reader.commit(message), shutdown_event)
        except Exception as e:
            self.stats.commit_errors += 1
            record_message_consumed(self.topic, self.group_id, CONSUMED_COMMIT_ERROR)
            log_exception(
                logger,
                e,
                "Failed to commit offset",
                level=logging.WARNING,
                include_traceback=False,
                **self._log_extra(),
            )
            return

        if result is _SHUTDOWN:
            logger.info("Commit interrupted by shutdown", extra=self._log_extra())
            return

        self.stats.committed += 1
        record_message_consumed(self.topic, self.group_id, CONSUMED_COMMITTED)

    async def close(self) -> None:
        """Release the reader.

        Raises:
            CloseError: the reader failed to shut down cleanly
        """
        if self._closed:
            return
        self._closed = True

        try:
            await self.reader.close()
        except Exception as e:
            raise CloseError.for_reader(self.topic, cause=e) from e

        logger.debug("Consumer closed", extra=self._log_extra())


def create_event_consumer(
    config: KafkaConfig,
    topic: str,
    group_id: str | None = None,
    backoff: BackoffPolicy | None = None,
) -> EventConsumer:
    """Build an EventConsumer reading ``topic`` through aiokafka."""
    group_id = group_id or config.group_id
    reader = KafkaMessageReader(config, topic, group_id=group_id)
    return EventConsumer(
        reader,
        topic=topic,
        group_id=group_id,
        backoff=backoff or config.build_backoff_policy(),
    )


__all__ = [
    "ConsumerState",
    "ConsumerStats",
    "EventConsumer",
    "EventHandler",
    "create_event_consumer",
]
