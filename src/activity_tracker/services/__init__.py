"""Application services built on the broker plumbing."""

from activity_tracker.services.event_consumers import EventConsumerService
from activity_tracker.services.sessions import (
    InMemorySessionRepository,
    SessionRepository,
    UserSession,
)
from activity_tracker.services.user_events import UserEventService

__all__ = [
    "EventConsumerService",
    "UserEventService",
    "SessionRepository",
    "InMemorySessionRepository",
    "UserSession",
]
