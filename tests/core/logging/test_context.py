"""Tests for core.logging.context module."""

import asyncio

import pytest

from core.logging.context import clear_log_context, get_log_context, set_log_context


class TestLogContext:
    def setup_method(self):
        clear_log_context()

    def teardown_method(self):
        clear_log_context()

    def test_defaults_are_empty(self):
        assert get_log_context() == {"stage": "", "worker_id": "", "lane": ""}

    def test_set_all_fields(self):
        set_log_context(stage="consume", worker_id="w-1", lane="user-logins")
        assert get_log_context() == {
            "stage": "consume",
            "worker_id": "w-1",
            "lane": "user-logins",
        }

    def test_none_leaves_field_unchanged(self):
        set_log_context(stage="consume")
        set_log_context(worker_id="w-2")
        assert get_log_context()["stage"] == "consume"

    def test_clear(self):
        set_log_context(stage="consume", lane="page-views")
        clear_log_context()
        assert get_log_context()["lane"] == ""

    @pytest.mark.asyncio
    async def test_lane_isolated_per_task(self):
        async def lane(name):
            set_log_context(lane=name)
            await asyncio.sleep(0)
            return get_log_context()["lane"]

        results = await asyncio.gather(lane("user-logins"), lane("page-views"))

        assert results == ["user-logins", "page-views"]
        assert get_log_context()["lane"] == ""
