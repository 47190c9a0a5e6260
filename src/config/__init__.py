"""Configuration loading for the activity tracker.

Configuration lives in a single YAML file, ``config/config.yaml`` next to
this package, with ``${VAR}`` / ``${VAR:-default}`` environment expansion.

Main Functions
--------------

    - load_config(): Load configuration from YAML
    - get_config(): Get or load singleton config instance
    - set_config(): Install a config instance (tests)
    - reset_config(): Reset singleton config instance

Usage
-----

    >>> from config import get_config
    >>> config = get_config()
    >>> config.kafka.bootstrap_servers
    'localhost:9092'

Configuration Priority
----------------------

1. ``overrides`` passed to load_config()
2. Environment variables referenced from the YAML file
3. YAML values
4. Dataclass defaults
"""

from config.config import (
    AppConfig,
    KafkaConfig,
    LoggingConfig,
    TrackerConfig,
    get_config,
    load_config,
    reset_config,
    set_config,
)

__all__ = [
    "load_config",
    "get_config",
    "set_config",
    "reset_config",
    "TrackerConfig",
    "AppConfig",
    "KafkaConfig",
    "LoggingConfig",
]
