"""
Resilience patterns module.

Components:
    - RetryConfig: Exponential backoff configuration
    - @with_retry_async decorator: Bounded retry with jitter
    - BackoffPolicy / ExponentialBackoff / NoBackoff: pacing for unbounded loops
"""

from .backoff import BackoffPolicy, ExponentialBackoff, NoBackoff
from .retry import (
    DEFAULT_RETRY,
    RetryConfig,
    with_retry_async,
)

__all__ = [
    # Retry
    "RetryConfig",
    "with_retry_async",
    "DEFAULT_RETRY",
    # Backoff
    "BackoffPolicy",
    "ExponentialBackoff",
    "NoBackoff",
]
