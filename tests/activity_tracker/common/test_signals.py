"""Tests for shutdown signal registration."""

import signal
from unittest.mock import MagicMock, patch

from activity_tracker.common.signals import (
    remove_shutdown_signal_handlers,
    setup_shutdown_signal_handlers,
)


class TestSetupShutdownSignalHandlers:
    def test_registers_on_loop(self):
        loop = MagicMock()
        callback = MagicMock()

        setup_shutdown_signal_handlers(callback, loop=loop)

        registered = {c.args[0] for c in loop.add_signal_handler.call_args_list}
        assert registered == {signal.SIGTERM, signal.SIGINT}
        assert all(c.args[1] is callback for c in loop.add_signal_handler.call_args_list)

    def test_falls_back_to_signal_module(self):
        loop = MagicMock()
        loop.add_signal_handler.side_effect = NotImplementedError
        callback = MagicMock()

        with patch("activity_tracker.common.signals.signal.signal") as signal_fn:
            setup_shutdown_signal_handlers(callback, loop=loop)

        assert {c.args[0] for c in signal_fn.call_args_list} == {signal.SIGTERM, signal.SIGINT}

        # Handler hops back onto the loop thread
        handler = signal_fn.call_args_list[0].args[1]
        handler(signal.SIGTERM, None)
        loop.call_soon_threadsafe.assert_called_once_with(callback)
        callback.assert_not_called()


class TestRemoveShutdownSignalHandlers:
    def test_removes_from_loop(self):
        loop = MagicMock()

        remove_shutdown_signal_handlers(loop=loop)

        removed = {c.args[0] for c in loop.remove_signal_handler.call_args_list}
        assert removed == {signal.SIGTERM, signal.SIGINT}

    def test_restores_default_handlers_without_loop_support(self):
        loop = MagicMock()
        loop.remove_signal_handler.side_effect = NotImplementedError

        with patch("activity_tracker.common.signals.signal.signal") as signal_fn:
            remove_shutdown_signal_handlers(loop=loop)

        assert all(c.args[1] == signal.SIG_DFL for c in signal_fn.call_args_list)
