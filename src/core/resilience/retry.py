"""
Retry utilities with exception-aware handling.

Uses the exception hierarchy to make retry decisions:
- Transient errors: retry with exponential backoff
- Auth errors: retry a bounded number of times (credentials may be rotating)
- Permanent errors: fail immediately (no retry)
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps

from core.errors.exceptions import (
    PipelineError,
    classify_exception,
    wrap_exception,
)
from core.types import ErrorCategory

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0

    # If True, don't retry permanent errors even if max_attempts > 0
    respect_permanent: bool = True

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        # bool('false') would be True
        if not isinstance(self.respect_permanent, bool):
            self.respect_permanent = str(self.respect_permanent).lower() in (
                "1",
                "true",
                "yes",
            )

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay with equal jitter to prevent thundering herd.

        Args:
            attempt: 0-indexed attempt number

        Returns:
            Delay in seconds
        """
        base_delay = self.base_delay * (self.exponential_base**attempt)

        # Equal jitter: half fixed, half random
        jitter = random.uniform(0, base_delay / 2)
        delay = (base_delay / 2) + jitter

        return min(delay, self.max_delay)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Determine if error should be retried.

        Args:
            error: The exception that occurred
            attempt: 0-indexed current attempt

        Returns:
            True if should retry
        """
        if attempt >= self.max_attempts - 1:
            return False

        if isinstance(error, PipelineError):
            if self.respect_permanent and not error.is_retryable:
                return False
            return error.is_retryable

        category = classify_exception(error)
        if self.respect_permanent and category == ErrorCategory.PERMANENT:
            return False

        return category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.AUTH,
            ErrorCategory.UNKNOWN,
        )


DEFAULT_RETRY = RetryConfig(max_attempts=3, base_delay=1.0)


def with_retry_async(
    config: RetryConfig | None = None,
    on_retry: Callable[[Exception, int, float], None] | None = None,
    wrap_errors: bool = True,
):
    """
    Decorator for retrying async functions with backoff.

    Args:
        config: Retry configuration (defaults to DEFAULT_RETRY)
        on_retry: Callback before each retry (error, attempt, delay)
        wrap_errors: If True, wrap unknown exceptions in PipelineError

    Usage:
        @with_retry_async(config=RetryConfig(max_attempts=5))
        async def create_topics():
            ...
    """
    if config is None:
        config = DEFAULT_RETRY

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(config.max_attempts):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            "Retry succeeded for %s after %d attempts",
                            func.__name__,
                            attempt + 1,
                            extra={
                                "operation": func.__name__,
                                "attempt": attempt + 1,
                                "total_attempts": config.max_attempts,
                            },
                        )

                    return result

                except Exception as e:
                    wrapped = (
                        wrap_exception(e)
                        if wrap_errors and not isinstance(e, PipelineError)
                        else e
                    )
                    error_category = classify_exception(wrapped).value

                    if not config.should_retry(wrapped, attempt):
                        logger.error(
                            "Giving up on %s: %s",
                            func.__name__,
                            str(e)[:200],
                            extra={
                                "operation": func.__name__,
                                "error_type": type(wrapped).__name__,
                                "error_category": error_category,
                                "attempt": attempt + 1,
                                "max_attempts": config.max_attempts,
                            },
                        )
                        if wrapped is e:
                            raise
                        raise wrapped from e

                    delay = config.get_delay(attempt)
                    logger.warning(
                        "Retryable error for %s, will retry",
                        func.__name__,
                        extra={
                            "operation": func.__name__,
                            "attempt": attempt + 1,
                            "max_attempts": config.max_attempts,
                            "error_category": error_category,
                            "delay_seconds": round(delay, 2),
                            "error_message": str(e)[:200],
                        },
                    )

                    if on_retry:
                        on_retry(wrapped, attempt, delay)

                    await asyncio.sleep(delay)

            raise RuntimeError("retry loop exited without result")  # pragma: no cover

        return wrapper

    return decorator


__all__ = [
    "RetryConfig",
    "with_retry_async",
    "DEFAULT_RETRY",
]
