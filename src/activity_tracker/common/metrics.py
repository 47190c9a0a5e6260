"""
Prometheus metrics for the activity tracker.

Focused on essential metrics:
- Message production and consumption counts by outcome
- Fetch and producer errors
- Active consumer lanes
- Connection health
- Per-message processing duration

Metrics register on the default prometheus_client registry, which the CLI
exposes with ``start_http_server``.
"""

from prometheus_client import Counter, Gauge, Histogram

# Consumption outcomes
CONSUMED_COMMITTED = "committed"
CONSUMED_DECODE_ERROR = "decode_error"
CONSUMED_HANDLER_ERROR = "handler_error"
CONSUMED_COMMIT_ERROR = "commit_error"

messages_consumed_counter = Counter(
    "tracker_messages_consumed_total",
    "Messages fetched from topics, by processing outcome",
    labelnames=["topic", "consumer_group", "outcome"],
)

fetch_errors_counter = Counter(
    "tracker_fetch_errors_total",
    "Failed fetch attempts",
    labelnames=["topic", "consumer_group"],
)

messages_produced_counter = Counter(
    "tracker_messages_produced_total",
    "Messages written to topics",
    labelnames=["topic", "success"],
)

producer_errors_counter = Counter(
    "tracker_producer_errors_total",
    "Producer errors by error type",
    labelnames=["topic", "error_type"],
)

active_lanes_gauge = Gauge(
    "tracker_active_consumer_lanes",
    "Consumer lanes currently running",
)

connection_status_gauge = Gauge(
    "tracker_connection_status",
    "Broker connection status (1=connected, 0=disconnected)",
    labelnames=["component"],
)

message_processing_duration_seconds = Histogram(
    "tracker_message_processing_duration_seconds",
    "Time spent decoding, handling and committing one message",
    labelnames=["topic", "consumer_group"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)


def record_message_consumed(topic: str, consumer_group: str, outcome: str) -> None:
    messages_consumed_counter.labels(
        topic=topic, consumer_group=consumer_group, outcome=outcome
    ).inc()


def record_fetch_error(topic: str, consumer_group: str) -> None:
    fetch_errors_counter.labels(topic=topic, consumer_group=consumer_group).inc()


def record_messages_produced(topic: str, count: int, success: bool = True) -> None:
    """Record a write of ``count`` messages."""
    messages_produced_counter.labels(
        topic=topic, success="true" if success else "false"
    ).inc(count)


def record_producer_error(topic: str, error_type: str) -> None:
    producer_errors_counter.labels(topic=topic, error_type=error_type).inc()


def update_connection_status(component: str, connected: bool) -> None:
    connection_status_gauge.labels(component=component).set(1 if connected else 0)


__all__ = [
    # Metrics
    "messages_consumed_counter",
    "fetch_errors_counter",
    "messages_produced_counter",
    "producer_errors_counter",
    "active_lanes_gauge",
    "connection_status_gauge",
    "message_processing_duration_seconds",
    # Outcomes
    "CONSUMED_COMMITTED",
    "CONSUMED_DECODE_ERROR",
    "CONSUMED_HANDLER_ERROR",
    "CONSUMED_COMMIT_ERROR",
    # Helper functions
    "record_message_consumed",
    "record_fetch_error",
    "record_messages_produced",
    "record_producer_error",
    "update_connection_status",
]
