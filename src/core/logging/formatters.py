"""Log formatters for JSON and console output."""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.logging.message_context import get_message_context
from core.utils.json_serializers import json_serializer


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Redacts credentials embedded in broker URLs before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Errors
        "error_category",
        "error_message",
        "error",
        "error_type",
        # Resilience
        "attempt",
        "max_attempts",
        "total_attempts",
        "delay_seconds",
        "consecutive_failures",
        # Operation tracking
        "operation",
        "duration_ms",
        "processing_time_ms",
        "batch_size",
        "message_count",
        # Broker
        "topic",
        "topics",
        "partitions",
        "consumer_group",
        "client_id",
        "bootstrap_servers",
        # Identifiers
        "event_type",
        "user_id",
        "resource",
        "consumer_count",
        # Message transport metadata
        "message_topic",
        "message_partition",
        "message_offset",
        "message_key",
        "message_consumer_group",
    ]

    # Numeric fields are coerced so they stay numeric in downstream queries
    NUMERIC_FIELDS = {
        "processing_time_ms": float,
        "duration_ms": float,
        "delay_seconds": float,
        "attempt": int,
        "max_attempts": int,
        "total_attempts": int,
        "consecutive_failures": int,
        "batch_size": int,
        "message_count": int,
        "partitions": int,
        "consumer_count": int,
        "message_partition": int,
        "message_offset": int,
    }

    # Fields that may contain connection strings
    URL_FIELDS = ["bootstrap_servers", "error_message", "error"]

    # user:password@host
    CREDENTIALS_PATTERN = re.compile(r"(\w+://)?([^:/@\s]+):([^@\s]+)@")

    def _sanitize_url(self, url: str) -> str:
        return self.CREDENTIALS_PATTERN.sub(r"\1\2:[REDACTED]@", url)

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return self._sanitize_url(value)
        return value

    def _ensure_type(self, field: str, value: Any) -> Any:
        """
        Coerce numeric fields to their declared type.

        Returns None when the value cannot be converted.
        """
        if field not in self.NUMERIC_FIELDS or value is None:
            return value

        expected_type = self.NUMERIC_FIELDS[field]
        try:
            return expected_type(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: dict[str, Any], log_context: dict[str, Any]) -> None:
        for field, value in log_context.items():
            if value:
                log_entry[field] = value

    @staticmethod
    def _should_include_source_location(record: logging.LogRecord) -> bool:
        return record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL)

    def _inject_extra_fields(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                typed_value = self._ensure_type(field, value)
                log_entry[field] = self._sanitize_value(field, typed_value)

    def _inject_exception(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        log_entry = self._base_log_entry(record)

        self._inject_context(log_entry, get_log_context())
        self._inject_context(log_entry, get_message_context())

        if self._should_include_source_location(record):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        # Explicit extras win over ambient context
        self._inject_extra_fields(log_entry, record)

        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    # ANSI color codes
    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        if not self._use_colors:
            return level_name

        color = self.COLORS.get(record.levelno, "")
        if not color:
            return level_name

        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_prefix(level_name: str, log_context: dict[str, Any]) -> str:
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            level_name,
        ]

        if log_context["stage"]:
            parts.append(f"[{log_context['stage']}]")
        if log_context["lane"]:
            parts.append(f"[{log_context['lane']}]")

        return " - ".join(parts)

    @staticmethod
    def _build_tags(record: logging.LogRecord, message_context: dict[str, Any]) -> list[str]:
        tags = []
        partition = message_context.get("message_partition")
        offset = message_context.get("message_offset")
        if partition is not None and offset is not None:
            tags.append(f"[p{partition}@{offset}]")
        user_id = getattr(record, "user_id", None)
        if user_id:
            tags.append(f"[user:{user_id}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        log_context = get_log_context()

        level_name = self._format_level_name(record)
        prefix = self._build_prefix(level_name, log_context)
        tags = self._build_tags(record, get_message_context())

        message = record.getMessage()
        if tags:
            message = f"{' '.join(tags)} {message}"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{prefix} - {message}"
