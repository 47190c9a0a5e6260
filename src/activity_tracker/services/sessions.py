"""Session tracking sink for consumed user events."""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from activity_tracker.schemas.events import UserEvent, UserEventType
from core.errors.exceptions import PermanentError

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Destination for decoded events. Raising marks the event as not handled."""

    async def track_user_action(self, event: UserEvent) -> None:
        ...


@dataclass(frozen=True)
class UserSession:
    """Aggregated activity of one user."""

    user_id: str
    last_seen: datetime
    last_login: datetime | None = None
    logins: int = 0
    page_views: int = 0
    actions: int = 0


class InMemorySessionRepository:
    """Keeps per-user activity in process memory.

    Lanes call ``track_user_action`` concurrently; updates are serialized
    with a lock so counts stay exact.
    """

    def __init__(self):
        self._sessions: dict[str, UserSession] = {}
        self._lock = asyncio.Lock()

    async def track_user_action(self, event: UserEvent) -> None:
        if not event.user_id:
            raise PermanentError(
                "event has no user id", context={"event_type": event.type.value}
            )

        async with self._lock:
            session = self._sessions.get(event.user_id) or UserSession(
                user_id=event.user_id, last_seen=event.timestamp
            )
            session = replace(session, last_seen=max(session.last_seen, event.timestamp))

            if event.type is UserEventType.LOGIN:
                last_login = session.last_login
                if last_login is None or event.timestamp > last_login:
                    last_login = event.timestamp
                session = replace(session, logins=session.logins + 1, last_login=last_login)
            elif event.type is UserEventType.PAGE_VIEWS:
                session = replace(session, page_views=session.page_views + 1)
            else:
                session = replace(session, actions=session.actions + 1)

            self._sessions[event.user_id] = session

        logger.debug(
            "Tracked user action",
            extra={"user_id": event.user_id, "event_type": event.type.value},
        )

    def get_session(self, user_id: str) -> UserSession | None:
        return self._sessions.get(user_id)

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = [
    "SessionRepository",
    "UserSession",
    "InMemorySessionRepository",
]
