"""Tests for the activity_tracker command line entry point."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from tracker_fakes import FakeWriter

from activity_tracker import __main__ as cli
from activity_tracker.common.producer import MessageProducer
from config.config import TrackerConfig


class TestParseArgs:
    def test_send_arguments(self):
        args = cli.parse_args(
            ["send", "--user-id", "42", "--type", "PAGE-VIEWS", "--timestamp", "2024-01-01T00:00:00Z"]
        )
        assert args.command == "send"
        assert args.user_id == 42
        assert args.event_type == "PAGE-VIEWS"
        assert args.timestamp == datetime(2024, 1, 1, tzinfo=UTC)

    def test_consume_defaults(self):
        args = cli.parse_args(["consume"])
        assert args.metrics_port == 8000
        assert args.config is None
        assert args.log_level is None

    def test_global_options(self, tmp_path):
        args = cli.parse_args(
            ["--config", str(tmp_path / "c.yaml"), "--log-level", "DEBUG", "--log-to-stdout", "bootstrap"]
        )
        assert args.config == tmp_path / "c.yaml"
        assert args.log_level == "DEBUG"
        assert args.log_to_stdout is True

    def test_unknown_event_type_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["send", "--user-id", "1", "--type", "LOGOUT"])

    def test_bad_timestamp_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["send", "--user-id", "1", "--type", "LOGIN", "--timestamp", "soon"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])


class TestRunCommands:
    @pytest.fixture
    def config(self, kafka_config):
        return TrackerConfig(kafka=kafka_config)

    @pytest.mark.asyncio
    async def test_run_send_publishes_and_closes(self, config):
        writer = FakeWriter()
        producer = MessageProducer(writer, client_id="cli-producer")

        with patch.object(cli, "create_message_producer", return_value=producer):
            await cli.run_send(config, 42, "LOGIN", datetime(2024, 1, 1, tzinfo=UTC))

        (messages,) = writer.calls
        assert messages[0].topic == "user-logins"
        assert messages[0].key == b"42"
        assert producer.is_closed

    @pytest.mark.asyncio
    async def test_run_send_closes_on_failure(self, config):
        writer = FakeWriter(error=RuntimeError("broker down"))
        producer = MessageProducer(writer)

        with patch.object(cli, "create_message_producer", return_value=producer):
            with pytest.raises(RuntimeError):
                await cli.run_send(config, 42, "USER-ACTION", None)

        assert producer.is_closed

    @pytest.mark.asyncio
    async def test_run_bootstrap(self, config):
        with patch.object(cli, "create_topics", AsyncMock(return_value=["user-logins"])) as create:
            await cli.run_bootstrap(config)

        create.assert_awaited_once_with(config.kafka, cli.DEFAULT_TOPIC_REGISTRY)


def test_main_reports_missing_config(tmp_path, capsys):
    assert cli.main(["--config", str(tmp_path / "missing.yaml"), "bootstrap"]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_main_consume_installs_and_removes_signal_handlers(kafka_config):
    config = TrackerConfig(kafka=kafka_config)

    with (
        patch.object(cli, "load_config", return_value=config),
        patch.object(cli, "_setup_logging"),
        patch.object(cli, "setup_signal_handlers") as install,
        patch.object(cli, "remove_shutdown_signal_handlers") as remove,
        patch.object(cli, "run_consumers", AsyncMock()) as run,
    ):
        assert cli.main(["consume", "--metrics-port", "0"]) == 0

    install.assert_called_once()
    run.assert_awaited_once()
    remove.assert_called_once_with(install.call_args.args[0])


def test_main_send_leaves_signals_alone(kafka_config):
    config = TrackerConfig(kafka=kafka_config)

    with (
        patch.object(cli, "load_config", return_value=config),
        patch.object(cli, "_setup_logging"),
        patch.object(cli, "remove_shutdown_signal_handlers") as remove,
        patch.object(cli, "run_send", AsyncMock()),
    ):
        assert cli.main(["send", "--user-id", "1", "--type", "LOGIN"]) == 0

    remove.assert_not_called()
