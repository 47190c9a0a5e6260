"""
pytest configuration for activity tracker tests.

Adds src directory to Python path for imports and sets up test environment.
"""

import asyncio
import os
import sys
from pathlib import Path

import pytest

# Set test environment variables BEFORE any imports
os.environ.setdefault("TEST_MODE", "true")

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture
def shutdown_event():
    return asyncio.Event()


@pytest.fixture(autouse=True)
def _reset_log_context():
    """Keep contextvar log state from leaking between tests."""
    from core.logging import clear_log_context, clear_message_context

    yield
    clear_log_context()
    clear_message_context()
