"""Message transport context variables for structured logging."""

from contextvars import ContextVar
from typing import Any

_message_topic: ContextVar[str] = ContextVar("message_topic", default="")
_message_partition: ContextVar[int] = ContextVar("message_partition", default=-1)
_message_offset: ContextVar[int] = ContextVar("message_offset", default=-1)
_message_key: ContextVar[str] = ContextVar("message_key", default="")
_message_consumer_group: ContextVar[str] = ContextVar("message_consumer_group", default="")


def set_message_context(
    topic: str | None = None,
    partition: int | None = None,
    offset: int | None = None,
    key: str | None = None,
    consumer_group: str | None = None,
) -> None:
    """
    Set message transport context variables for structured logging.

    Args:
        topic: Message topic name
        partition: Partition number
        offset: Message offset within partition
        key: Message key (if any)
        consumer_group: Consumer group ID
    """
    if topic is not None:
        _message_topic.set(topic)
    if partition is not None:
        _message_partition.set(partition)
    if offset is not None:
        _message_offset.set(offset)
    if key is not None:
        _message_key.set(key)
    if consumer_group is not None:
        _message_consumer_group.set(consumer_group)


def get_message_context() -> dict[str, Any]:
    """
    Get current message transport logging context.

    Unset fields are omitted so log lines emitted outside message
    processing stay small.
    """
    context: dict[str, Any] = {}

    topic = _message_topic.get()
    if topic:
        context["message_topic"] = topic

    partition = _message_partition.get()
    if partition >= 0:
        context["message_partition"] = partition

    offset = _message_offset.get()
    if offset >= 0:
        context["message_offset"] = offset

    key = _message_key.get()
    if key:
        context["message_key"] = key

    consumer_group = _message_consumer_group.get()
    if consumer_group:
        context["message_consumer_group"] = consumer_group

    return context


def clear_message_context() -> None:
    """Clear all message transport logging context variables."""
    _message_topic.set("")
    _message_partition.set(-1)
    _message_offset.set(-1)
    _message_key.set("")
    _message_consumer_group.set("")


class MessageLogContext:
    """
    Context manager for message processing with automatic context setting.

    Usage:
        with MessageLogContext(topic="user-logins", partition=0, offset=12345):
            # All logs in this block will include message context
            await handle(event)
    """

    def __init__(
        self,
        topic: str | None = None,
        partition: int | None = None,
        offset: int | None = None,
        key: str | None = None,
        consumer_group: str | None = None,
    ):
        self.new_context = {
            "topic": topic,
            "partition": partition,
            "offset": offset,
            "key": key,
            "consumer_group": consumer_group,
        }
        self._tokens: list = []

    def __enter__(self) -> "MessageLogContext":
        variables = {
            "topic": _message_topic,
            "partition": _message_partition,
            "offset": _message_offset,
            "key": _message_key,
            "consumer_group": _message_consumer_group,
        }
        for name, value in self.new_context.items():
            if value is not None:
                var = variables[name]
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
        return False
