"""Shared Kafka connection and security configuration builders."""

import ssl
from typing import Any

from config.config import KafkaConfig


def build_kafka_security_config(config: KafkaConfig) -> dict[str, Any]:
    """Build aiokafka security kwargs from KafkaConfig.

    Handles PLAIN and SCRAM SASL mechanisms and SSL context creation.
    Returns an empty dict for PLAINTEXT connections.
    """
    if config.security_protocol == "PLAINTEXT":
        return {}

    security_config: dict[str, Any] = {
        "security_protocol": config.security_protocol,
    }

    if "SSL" in config.security_protocol:
        security_config["ssl_context"] = ssl.create_default_context()

    if config.security_protocol.startswith("SASL"):
        security_config["sasl_mechanism"] = config.sasl_mechanism
        security_config["sasl_plain_username"] = config.sasl_plain_username
        security_config["sasl_plain_password"] = config.sasl_plain_password

    return security_config


def build_connection_config(config: KafkaConfig, client_id: str) -> dict[str, Any]:
    """Connection kwargs shared by consumers, the producer and the admin client."""
    connection: dict[str, Any] = {
        "bootstrap_servers": config.bootstrap_servers,
        "client_id": client_id,
        "request_timeout_ms": config.request_timeout_ms,
        "metadata_max_age_ms": config.metadata_max_age_ms,
        "connections_max_idle_ms": config.connections_max_idle_ms,
    }
    connection.update(build_kafka_security_config(config))
    return connection
