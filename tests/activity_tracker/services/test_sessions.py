"""Tests for the in-memory session sink."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from tracker_fakes import make_event

from activity_tracker.schemas.events import UserEventType
from activity_tracker.services.sessions import InMemorySessionRepository
from core.errors.exceptions import PermanentError

T0 = datetime(2024, 1, 1, tzinfo=UTC)


class TestInMemorySessionRepository:
    @pytest.mark.asyncio
    async def test_counts_by_type(self):
        repo = InMemorySessionRepository()

        await repo.track_user_action(make_event("1", UserEventType.LOGIN, T0))
        await repo.track_user_action(make_event("1", UserEventType.PAGE_VIEWS, T0))
        await repo.track_user_action(make_event("1", UserEventType.PAGE_VIEWS, T0))
        await repo.track_user_action(make_event("1", UserEventType.USER_ACTION, T0))

        session = repo.get_session("1")
        assert (session.logins, session.page_views, session.actions) == (1, 2, 1)
        assert len(repo) == 1

    @pytest.mark.asyncio
    async def test_tracks_latest_times_regardless_of_arrival_order(self):
        repo = InMemorySessionRepository()
        later = T0 + timedelta(hours=1)

        await repo.track_user_action(make_event("1", UserEventType.LOGIN, later))
        await repo.track_user_action(make_event("1", UserEventType.LOGIN, T0))
        await repo.track_user_action(make_event("1", UserEventType.PAGE_VIEWS, T0))

        session = repo.get_session("1")
        assert session.last_login == later
        assert session.last_seen == later
        assert session.logins == 2

    @pytest.mark.asyncio
    async def test_no_login_means_no_last_login(self):
        repo = InMemorySessionRepository()
        await repo.track_user_action(make_event("2", UserEventType.USER_ACTION, T0))
        assert repo.get_session("2").last_login is None

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        assert InMemorySessionRepository().get_session("nobody") is None

    @pytest.mark.asyncio
    async def test_event_without_user_rejected(self):
        repo = InMemorySessionRepository()
        with pytest.raises(PermanentError, match="no user id"):
            await repo.track_user_action(make_event("", UserEventType.LOGIN, T0))
        assert len(repo) == 0

    @pytest.mark.asyncio
    async def test_concurrent_updates_all_counted(self):
        repo = InMemorySessionRepository()
        events = [make_event("3", UserEventType.PAGE_VIEWS, T0) for _ in range(50)]

        await asyncio.gather(*(repo.track_user_action(e) for e in events))

        assert repo.get_session("3").page_views == 50
