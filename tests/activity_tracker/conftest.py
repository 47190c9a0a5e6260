"""Shared fixtures for activity tracker tests."""

import pytest

from config.config import KafkaConfig


@pytest.fixture
def kafka_config():
    return KafkaConfig(bootstrap_servers="localhost:9092", group_id="test-group")
