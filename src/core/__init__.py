"""
Core library: reusable, broker-agnostic components.

Modules:
    resilience  - Retry with backoff, backoff policies for long-running loops
    logging     - Structured JSON logging with worker and message context
    errors      - Error classification and exception hierarchy
    utils       - JSON serialization hook, client id generation
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
