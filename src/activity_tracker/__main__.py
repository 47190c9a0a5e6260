"""User activity tracker entry point. Use --help for usage."""

import argparse
import asyncio
import logging
import os
import socket
import sys
from datetime import UTC, datetime
from functools import partial
from pathlib import Path

from dotenv import load_dotenv
from prometheus_client import start_http_server

from activity_tracker.common.admin import create_topics
from activity_tracker.common.consumer import create_event_consumer
from activity_tracker.common.producer import create_message_producer
from activity_tracker.common.signals import (
    remove_shutdown_signal_handlers,
    setup_shutdown_signal_handlers,
)
from activity_tracker.schemas.events import UserEvent, UserEventType
from activity_tracker.schemas.topics import DEFAULT_TOPIC_REGISTRY
from activity_tracker.services.event_consumers import EventConsumerService
from activity_tracker.services.sessions import InMemorySessionRepository
from activity_tracker.services.user_events import UserEventService
from config.config import TrackerConfig, load_config
from core.errors.exceptions import CloseError, PipelineError
from core.logging import log_exception, log_worker_startup, setup_logging
from core.utils import generate_worker_id

# __main__.py is at src/activity_tracker/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

# Set by signal handlers, observed by every consumer lane
_shutdown_event: asyncio.Event | None = None


def get_shutdown_event() -> asyncio.Event:
    global _shutdown_event
    if _shutdown_event is None:
        _shutdown_event = asyncio.Event()
    return _shutdown_event


def _parse_timestamp(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 timestamp: {value}") from e


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="activity_tracker",
        description="Publish and consume user activity events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Create the event topics (safe to re-run)
    python -m activity_tracker bootstrap

    # Consume every event topic until SIGINT/SIGTERM
    python -m activity_tracker consume --metrics-port 9090

    # Publish one event
    python -m activity_tracker send --user-id 42 --type LOGIN
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config)",
    )
    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all log output to stdout only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    consume = subparsers.add_parser("consume", help="Run one consumer per event topic")
    consume.add_argument(
        "--metrics-port",
        type=int,
        default=8000,
        help="Port for Prometheus metrics server, 0 to disable (default: 8000)",
    )

    subparsers.add_parser("bootstrap", help="Create event topics")

    send = subparsers.add_parser("send", help="Publish a single user event")
    send.add_argument("--user-id", type=int, required=True, help="Numeric user id")
    send.add_argument(
        "--type",
        dest="event_type",
        choices=[t.value for t in UserEventType],
        required=True,
        help="Event type",
    )
    send.add_argument(
        "--timestamp",
        type=_parse_timestamp,
        default=None,
        help="Event time in ISO 8601 (default: now, UTC)",
    )

    return parser.parse_args(argv)


def start_metrics_server(preferred_port: int) -> int:
    """Start Prometheus metrics server with automatic port fallback.
    Returns actual port number that the server is listening on."""
    try:
        start_http_server(preferred_port)
        return preferred_port
    except OSError as e:
        if e.errno != 98:
            raise

        logger.info(
            "Port %d already in use, finding available port",
            preferred_port,
        )
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("", 0))
            available_port = s.getsockname()[1]

        start_http_server(available_port)
        return available_port


def setup_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    """Set up signal handlers for graceful shutdown.

    First CTRL+C: sets the shutdown event. Lanes stop at their next fetch or
    commit; a message whose commit is still pending is left uncommitted and
    is redelivered after restart.
    Second CTRL+C: cancels all tasks immediately.
    """

    def handle_signal():
        shutdown_event = get_shutdown_event()
        if not shutdown_event.is_set():
            logger.info("Received signal, initiating graceful shutdown")
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    setup_shutdown_signal_handlers(handle_signal, loop=loop)


async def run_consumers(config: TrackerConfig, shutdown_event: asyncio.Event) -> None:
    """Consume every event topic into the in-memory session tracker."""
    repository = InMemorySessionRepository()
    service = EventConsumerService(
        repository,
        partial(create_event_consumer, config.kafka),
        DEFAULT_TOPIC_REGISTRY,
    )

    try:
        results = await service.listen_for_user_events(shutdown_event)
    finally:
        try:
            await service.close()
        except CloseError as e:
            # Don't mask the exception that ended the run
            log_exception(logger, e, "Error closing consumers", include_traceback=False)

    for topic, stats in results.items():
        if stats is None:
            logger.warning("Lane ended with an error", extra={"topic": topic})
            continue
        logger.info(
            "Lane summary: fetched=%d committed=%d",
            stats.fetched,
            stats.committed,
            extra={"topic": topic},
        )
    logger.info("Tracked sessions for %d users", len(repository))


async def run_bootstrap(config: TrackerConfig) -> None:
    created = await create_topics(config.kafka, DEFAULT_TOPIC_REGISTRY)
    logger.info("Topic bootstrap complete", extra={"topics": created})


async def run_send(
    config: TrackerConfig,
    user_id: int,
    event_type: str,
    timestamp: datetime | None,
) -> None:
    event = UserEvent(
        user_id=str(user_id),
        timestamp=timestamp or datetime.now(UTC),
        type=UserEventType(event_type),
    )
    producer = create_message_producer(config.kafka)
    service = UserEventService(producer, DEFAULT_TOPIC_REGISTRY)
    try:
        results = await service.send_user_event(user_id, event)
    finally:
        await producer.close()

    for result in results:
        logger.info(
            "Event published",
            extra={
                "topic": result.topic,
                "message_partition": result.partition,
                "message_offset": result.offset,
            },
        )


def _setup_logging(args: argparse.Namespace, config: TrackerConfig, worker_id: str) -> None:
    level_name = args.log_level or config.logging.level
    log_to_stdout = (
        args.log_to_stdout
        or config.logging.log_to_stdout
        or os.getenv("LOG_TO_STDOUT", "false").lower() in ("true", "1", "yes")
    )
    setup_logging(
        name="activity_tracker",
        stage=args.command,
        log_dir=Path(os.getenv("LOG_DIR") or config.logging.log_dir),
        json_format=config.logging.format == "json",
        console_level=getattr(logging, level_name),
        worker_id=worker_id,
        log_to_stdout=log_to_stdout,
    )


def main(argv: list[str] | None = None) -> int:
    global logger

    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"[STARTUP] Configuration error: {e}", file=sys.stderr)
        return 1

    worker_id = os.getenv("WORKER_ID") or generate_worker_id(args.command)
    _setup_logging(args, config, worker_id)
    logger = logging.getLogger(__name__)

    log_worker_startup(
        logger,
        f"{config.app.name} {args.command}",
        kafka_bootstrap_servers=config.kafka.bootstrap_servers,
        topics=DEFAULT_TOPIC_REGISTRY.topics(),
        consumer_group=config.kafka.group_id if args.command == "consume" else None,
        extra_config={
            "Version": config.app.version,
            "Environment": config.app.environment,
            "Worker ID": worker_id,
        },
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    try:
        if args.command == "consume":
            setup_signal_handlers(loop)
            if args.metrics_port:
                port = start_metrics_server(args.metrics_port)
                logger.info("Metrics server started on port %d", port)
            loop.run_until_complete(run_consumers(config, get_shutdown_event()))
        elif args.command == "bootstrap":
            loop.run_until_complete(run_bootstrap(config))
        else:
            loop.run_until_complete(
                run_send(config, args.user_id, args.event_type, args.timestamp)
            )
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except PipelineError as e:
        log_exception(logger, e, f"{args.command} failed")
        return 1
    finally:
        if args.command == "consume":
            remove_shutdown_signal_handlers(loop)
        loop.close()

    logger.info("Shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
