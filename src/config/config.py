"""Activity tracker configuration from YAML file.

Loads from config/config.yaml with all settings in one place:
- Application identity (name, version, environment)
- Kafka connection, consumer and producer settings
- Fetch-failure backoff for the consume loop
- Logging

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files.
"""

import json
import logging
import os
import re
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from core.resilience.backoff import BackoffPolicy, ExponentialBackoff, NoBackoff
from core.resilience.retry import RetryConfig

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(([^}]*))?)?\}")


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return _ENV_PATTERN.sub(replacer, data)
    else:
        return data


# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_LOG_FORMATS = ["json", "console"]


@dataclass
class AppConfig:
    """Application identity, reported in startup logs and client ids."""

    name: str = "user-activity-tracker"
    version: str = "1.0.0"
    environment: str = "development"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"
    log_dir: str = "logs"
    log_to_stdout: bool = False


@dataclass
class KafkaConfig:
    """Kafka connection and client configuration.

    Configuration structure:
        kafka:
          connection: {...}       # Shared connection settings
          group_id: ...           # Consumer group for every topic lane
          consumer: {...}         # aiokafka consumer settings
          producer: {...}         # aiokafka producer settings
          topics: {...}           # Bootstrap settings (replication_factor)
          fetch_backoff: {...}    # Pause between consecutive fetch failures

    All timing values in milliseconds unless otherwise noted.
    """

    # =========================================================================
    # CONNECTION SETTINGS (shared by consumers, producer and admin client)
    # =========================================================================
    bootstrap_servers: str = ""
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""
    request_timeout_ms: int = 40000
    metadata_max_age_ms: int = 300000  # 5 minutes
    connections_max_idle_ms: int = 540000  # 9 minutes
    client_id_prefix: str = "activity-tracker"

    # =========================================================================
    # CLIENT SETTINGS
    # =========================================================================
    group_id: str = "user-activity-tracker"
    consumer: Dict[str, Any] = field(default_factory=dict)
    producer: Dict[str, Any] = field(default_factory=dict)

    # =========================================================================
    # TOPIC BOOTSTRAP
    # =========================================================================
    replication_factor: int = 1

    # =========================================================================
    # FETCH BACKOFF (seconds)
    # =========================================================================
    fetch_backoff: Dict[str, Any] = field(default_factory=dict)

    def build_backoff_policy(self) -> BackoffPolicy:
        """Build the consume-loop backoff from ``fetch_backoff``.

        ``strategy: none`` retries immediately; anything else is exponential.
        """
        settings = dict(self.fetch_backoff)
        strategy = settings.pop("strategy", "exponential")
        if strategy == "none":
            return NoBackoff()
        return ExponentialBackoff(
            RetryConfig(
                base_delay=settings.get("base_delay", 0.5),
                max_delay=settings.get("max_delay", 30.0),
                exponential_base=settings.get("exponential_base", 2.0),
            )
        )

    def validate(self) -> None:
        """Validate configuration for correctness and constraints."""
        if not self.bootstrap_servers:
            raise ValueError("bootstrap_servers is required in kafka.connection section")
        if not self.group_id:
            raise ValueError("group_id is required in kafka section")

        self._validate_enum(
            {"security_protocol": self.security_protocol},
            "security_protocol",
            ["PLAINTEXT", "SSL", "SASL_PLAINTEXT", "SASL_SSL"],
            "kafka.connection",
        )
        if self.security_protocol.startswith("SASL"):
            self._validate_enum(
                {"sasl_mechanism": self.sasl_mechanism},
                "sasl_mechanism",
                ["PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512"],
                "kafka.connection",
            )

        if self.replication_factor < 1:
            raise ValueError(
                f"kafka.topics: replication_factor must be >= 1, got {self.replication_factor}"
            )

        self._validate_consumer_settings(self.consumer, "kafka.consumer")
        self._validate_producer_settings(self.producer, "kafka.producer")
        self._validate_backoff_settings(self.fetch_backoff, "kafka.fetch_backoff")

    @staticmethod
    def _validate_enum(
        settings: Dict[str, Any],
        key: str,
        valid_values: List[Any],
        context: str
    ) -> None:
        """Validate that a setting's value is in a list of valid values."""
        if key in settings and settings[key] not in valid_values:
            raise ValueError(
                f"{context}: {key} must be one of {valid_values}, "
                f"got '{settings[key]}'"
            )

    @staticmethod
    def _validate_min(
        settings: Dict[str, Any],
        key: str,
        min_value: float,
        inclusive: bool,
        context: str
    ) -> None:
        """Validate that a setting's value meets a minimum threshold."""
        if key in settings:
            value = settings[key]
            if inclusive and value < min_value:
                raise ValueError(
                    f"{context}: {key} must be >= {min_value}, got {value}"
                )
            elif not inclusive and value <= min_value:
                raise ValueError(
                    f"{context}: {key} must be > {min_value}, got {value}"
                )

    def _validate_consumer_settings(self, settings: Dict[str, Any], context: str) -> None:
        """Validate consumer settings against Kafka requirements."""
        if "heartbeat_interval_ms" in settings and "session_timeout_ms" in settings:
            heartbeat = settings["heartbeat_interval_ms"]
            session_timeout = settings["session_timeout_ms"]
            if heartbeat >= session_timeout / 3:
                raise ValueError(
                    f"{context}: heartbeat_interval_ms ({heartbeat}) must be < "
                    f"session_timeout_ms/3 ({session_timeout/3:.0f})"
                )

        if "session_timeout_ms" in settings and "max_poll_interval_ms" in settings:
            session_timeout = settings["session_timeout_ms"]
            max_poll_interval = settings["max_poll_interval_ms"]
            if session_timeout >= max_poll_interval:
                raise ValueError(
                    f"{context}: session_timeout_ms ({session_timeout}) must be < "
                    f"max_poll_interval_ms ({max_poll_interval})"
                )

        self._validate_enum(settings, "auto_offset_reset", ["earliest", "latest", "none"], context)
        if settings.get("enable_auto_commit"):
            raise ValueError(
                f"{context}: enable_auto_commit must be false, offsets are committed "
                f"after each handled message"
            )

    def _validate_producer_settings(self, settings: Dict[str, Any], context: str) -> None:
        self._validate_enum(settings, "acks", ["0", "1", "all", 0, 1, -1], context)
        self._validate_enum(settings, "compression_type", [None, "gzip", "snappy", "lz4", "zstd"], context)
        self._validate_min(settings, "linger_ms", 0, inclusive=True, context=context)
        self._validate_min(settings, "max_batch_size", 1, inclusive=True, context=context)

    def _validate_backoff_settings(self, settings: Dict[str, Any], context: str) -> None:
        self._validate_enum(settings, "strategy", ["exponential", "none"], context)
        self._validate_min(settings, "base_delay", 0, inclusive=True, context=context)
        self._validate_min(settings, "max_delay", 0, inclusive=True, context=context)
        self._validate_min(settings, "exponential_base", 1, inclusive=True, context=context)


@dataclass
class TrackerConfig:
    """Top-level configuration."""

    kafka: KafkaConfig
    app: AppConfig = field(default_factory=AppConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        self.kafka.validate()
        if self.logging.level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"logging: level must be one of {VALID_LOG_LEVELS}, got '{self.logging.level}'"
            )
        if self.logging.format not in VALID_LOG_FORMATS:
            raise ValueError(
                f"logging: format must be one of {VALID_LOG_FORMATS}, got '{self.logging.format}'"
            )


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _build_kafka_config(kafka_data: Dict[str, Any]) -> KafkaConfig:
    connection = kafka_data.get("connection", {})
    if not connection:
        connection = kafka_data
    topics = kafka_data.get("topics", {})

    return KafkaConfig(
        bootstrap_servers=connection.get("bootstrap_servers", ""),
        security_protocol=connection.get("security_protocol", "PLAINTEXT"),
        sasl_mechanism=connection.get("sasl_mechanism", "PLAIN"),
        sasl_plain_username=connection.get("sasl_plain_username", ""),
        sasl_plain_password=connection.get("sasl_plain_password", ""),
        request_timeout_ms=int(connection.get("request_timeout_ms", 40000)),
        metadata_max_age_ms=int(connection.get("metadata_max_age_ms", 300000)),
        connections_max_idle_ms=int(connection.get("connections_max_idle_ms", 540000)),
        client_id_prefix=connection.get("client_id_prefix", "activity-tracker"),
        group_id=kafka_data.get("group_id", "user-activity-tracker"),
        consumer=kafka_data.get("consumer", {}) or {},
        producer=kafka_data.get("producer", {}) or {},
        replication_factor=int(topics.get("replication_factor", 1)),
        fetch_backoff=kafka_data.get("fetch_backoff", {}) or {},
    )


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> TrackerConfig:
    """Load configuration from config.yaml.

    ``overrides`` is deep-merged over the whole file (top-level sections
    ``app``, ``kafka`` and ``logging``) after environment expansion.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n" f"Expected file: config/config.yaml"
        )

    logger.info("Loading configuration from file: %s", config_path)
    yaml_data = load_yaml(config_path)
    yaml_data = _expand_env_vars(yaml_data)

    if overrides:
        logger.debug("Applying overrides: %s", list(overrides.keys()))
        yaml_data = _deep_merge(yaml_data, overrides)

    if "kafka" not in yaml_data:
        raise ValueError("Invalid config file: missing 'kafka:' section")

    app_data = yaml_data.get("app", {}) or {}
    logging_data = yaml_data.get("logging", {}) or {}

    config = TrackerConfig(
        kafka=_build_kafka_config(yaml_data["kafka"] or {}),
        app=AppConfig(
            name=app_data.get("name", "user-activity-tracker"),
            version=str(app_data.get("version", "1.0.0")),
            environment=app_data.get("environment", "development"),
        ),
        logging=LoggingConfig(
            level=str(logging_data.get("level", "INFO")).upper(),
            format=logging_data.get("format", "json"),
            log_dir=logging_data.get("log_dir", "logs"),
            log_to_stdout=_as_bool(logging_data.get("log_to_stdout", False)),
        ),
    )

    logger.debug(
        "Configuration loaded",
        extra={
            "bootstrap_servers": config.kafka.bootstrap_servers,
            "consumer_group": config.kafka.group_id,
        },
    )

    config.validate()
    logger.debug("Configuration validation passed")

    return config


_tracker_config: Optional[TrackerConfig] = None


def get_config() -> TrackerConfig:
    """Get or load the singleton config instance."""
    global _tracker_config
    if _tracker_config is None:
        _tracker_config = load_config()
    return _tracker_config


def set_config(config: TrackerConfig) -> None:
    """Set the singleton config instance (useful for testing)."""
    global _tracker_config
    _tracker_config = config


def reset_config() -> None:
    """Reset the singleton config instance (forces reload on next get_config() call)."""
    global _tracker_config
    _tracker_config = None


def _redacted(config: TrackerConfig) -> Dict[str, Any]:
    data = asdict(config)
    if data["kafka"].get("sasl_plain_password"):
        data["kafka"]["sasl_plain_password"] = "[REDACTED]"
    return data


def _cli_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Activity tracker configuration tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration
  python -m config.config --validate

  # Show the resolved configuration (env vars expanded, secrets redacted)
  python -m config.config --show

  # Use a custom config file
  python -m config.config --config /path/to/config.yaml --validate
        """,
    )
    parser.add_argument("--validate", action="store_true", help="Validate configuration")
    parser.add_argument("--show", action="store_true", help="Print resolved configuration as JSON")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml file (default: src/config/config.yaml)",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    if not args.validate and not args.show:
        parser.print_help()
        return 0

    try:
        config = load_config(config_path=args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return 1

    if args.validate:
        print("Configuration valid")
    if args.show:
        print(json.dumps(_redacted(config), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(_cli_main())
