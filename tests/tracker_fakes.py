"""In-memory stand-ins for the broker transports, plus message builders."""

import asyncio
from collections import deque
from datetime import UTC, datetime

from activity_tracker.common.types import OutboundMessage, PipelineMessage, ProduceResult
from activity_tracker.schemas.events import UserEvent, UserEventType, encode_user_event


def make_event(
    user_id: str = "42",
    event_type: UserEventType = UserEventType.LOGIN,
    timestamp: datetime | None = None,
) -> UserEvent:
    return UserEvent(
        user_id=user_id,
        timestamp=timestamp or datetime(2024, 1, 1, tzinfo=UTC),
        type=event_type,
    )


def make_message(
    topic: str = "user-logins",
    offset: int = 0,
    value: bytes | None = None,
    partition: int = 0,
    key: bytes | None = b"42",
) -> PipelineMessage:
    if value is None:
        value = encode_user_event(make_event())
    return PipelineMessage(
        topic=topic,
        partition=partition,
        offset=offset,
        timestamp=1704067200000,
        key=key,
        value=value,
    )


class FakeReader:
    """MessageReader over a fixed script of messages and errors.

    Items are returned (or raised, for exceptions) in order. Once the script
    is drained, ``fetch_message`` sets ``shutdown_on_drain`` if given and
    then blocks until cancelled, like a real reader on an idle topic.
    """

    def __init__(self, items=(), shutdown_on_drain: asyncio.Event | None = None):
        self.items = deque(items)
        self.shutdown_on_drain = shutdown_on_drain
        self.fetch_calls = 0
        self.committed: list[int] = []
        self.commit_errors: dict[int, Exception] = {}
        self.close_error: Exception | None = None
        self.close_calls = 0

    async def fetch_message(self) -> PipelineMessage:
        self.fetch_calls += 1
        if self.items:
            item = self.items.popleft()
            if isinstance(item, BaseException):
                raise item
            return item

        if self.shutdown_on_drain is not None:
            self.shutdown_on_drain.set()
        await asyncio.Event().wait()
        raise AssertionError("unreachable")

    async def commit(self, message: PipelineMessage) -> None:
        error = self.commit_errors.get(message.offset)
        if error is not None:
            raise error
        self.committed.append(message.offset)

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeWriter:
    """MessageWriter that records every write call."""

    def __init__(self, error: Exception | None = None):
        self.calls: list[tuple[OutboundMessage, ...]] = []
        self.error = error
        self.close_error: Exception | None = None
        self.close_calls = 0

    async def write_messages(self, *messages: OutboundMessage) -> list[ProduceResult]:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return [
            ProduceResult(topic=m.topic, partition=0, offset=i) for i, m in enumerate(messages)
        ]

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


