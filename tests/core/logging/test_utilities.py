"""Tests for logging utility functions."""

import logging
from unittest.mock import MagicMock

from core.errors.exceptions import DecodeError, TransportError
from core.logging.utilities import _RESERVED_LOG_KEYS, log_exception, log_with_context


class TestLogWithContext:
    def test_logs_message_at_given_level(self):
        logger = MagicMock()
        log_with_context(logger, logging.INFO, "test message")

        logger.log.assert_called_once_with(logging.INFO, "test message", exc_info=None, extra={})

    def test_passes_extra_fields(self):
        logger = MagicMock()
        log_with_context(logger, logging.WARNING, "slow", topic="user-logins", duration_ms=500)

        logger.log.assert_called_once_with(
            logging.WARNING,
            "slow",
            exc_info=None,
            extra={"topic": "user-logins", "duration_ms": 500},
        )

    def test_handles_exc_info_separately(self):
        logger = MagicMock()
        log_with_context(logger, logging.ERROR, "failed", exc_info=True, topic="t")

        logger.log.assert_called_once_with(
            logging.ERROR, "failed", exc_info=True, extra={"topic": "t"}
        )

    def test_drops_reserved_keys(self):
        logger = MagicMock()
        log_with_context(logger, logging.INFO, "m", name="x", message="y", taskName="z", ok=1)

        assert logger.log.call_args.kwargs["extra"] == {"ok": 1}

    def test_reserved_keys_cover_task_name(self):
        assert "taskName" in _RESERVED_LOG_KEYS


class TestLogException:
    def test_adds_category_and_type(self):
        logger = MagicMock()
        exc = TransportError("broker down", topic="user-logins")

        log_exception(logger, exc, "Fetch failed", topic="user-logins")

        args, kwargs = logger.log.call_args
        assert args == (logging.ERROR, "Fetch failed")
        assert kwargs["exc_info"] is exc
        assert kwargs["extra"] == {
            "topic": "user-logins",
            "error_category": "transient",
            "error_type": "TransportError",
            "error_message": "broker down",
        }

    def test_without_traceback(self):
        logger = MagicMock()
        log_exception(
            logger, DecodeError("bad"), "Skipping", level=logging.WARNING, include_traceback=False
        )

        args, kwargs = logger.log.call_args
        assert args[0] == logging.WARNING
        assert "exc_info" not in kwargs
        assert kwargs["extra"]["error_category"] == "permanent"

    def test_plain_exception_has_no_category(self):
        logger = MagicMock()
        log_exception(logger, ValueError("bad"), "oops")

        extra = logger.log.call_args.kwargs["extra"]
        assert "error_category" not in extra
        assert extra["error_type"] == "ValueError"

    def test_truncates_long_messages(self):
        logger = MagicMock()
        log_exception(logger, RuntimeError("x" * 600), "oops")

        message = logger.log.call_args.kwargs["extra"]["error_message"]
        assert len(message) == 503
        assert message.endswith("...")

    def test_explicit_error_type_kept(self):
        logger = MagicMock()
        log_exception(logger, RuntimeError("x"), "oops", error_type="Custom")

        assert logger.log.call_args.kwargs["extra"]["error_type"] == "Custom"
