"""
Core types shared across modules.

Kept separate from ``core.errors`` so that retry and backoff helpers can
import the enum without pulling in the exception hierarchy.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that should retry with backoff
                   (broker unavailable, request timeouts)
        AUTH: Authentication failures (SASL handshake rejected)
        PERMANENT: Failures that won't succeed on retry
                   (malformed payloads, unknown event types, bad config)
        UNKNOWN: Unclassified errors, may retry conservatively
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
