"""
Stateful backoff policies for long-running loops.

Unlike ``with_retry_async``, which retries a single call a bounded number
of times, a backoff policy paces an unbounded loop: the consume loop asks
for the next delay after each consecutive failure and resets the policy
after a success.
"""

from typing import Protocol

from core.resilience.retry import RetryConfig

_MAX_EXPONENT = 32


class BackoffPolicy(Protocol):
    """Delay source for consecutive failures."""

    def next_delay(self) -> float:
        """Return the delay in seconds before the next attempt."""
        ...

    def reset(self) -> None:
        """Forget previous failures after a success."""
        ...


class ExponentialBackoff:
    """
    Exponential backoff with equal jitter, capped at ``max_delay``.

    Delays are computed by ``RetryConfig.get_delay`` so the consume loop and
    the retry decorator spread load the same way. ``max_attempts`` is not
    consulted: the loop never gives up on its own.
    """

    def __init__(self, config: RetryConfig | None = None):
        self.config = config or RetryConfig(base_delay=0.5, max_delay=30.0)
        self._failures = 0

    @property
    def failures(self) -> int:
        return self._failures

    def next_delay(self) -> float:
        # Exponent is clamped; the delay is already at max_delay long before this
        delay = self.config.get_delay(min(self._failures, _MAX_EXPONENT))
        self._failures += 1
        return delay

    def reset(self) -> None:
        self._failures = 0


class NoBackoff:
    """Retry immediately."""

    def next_delay(self) -> float:
        return 0.0

    def reset(self) -> None:
        pass


__all__ = [
    "BackoffPolicy",
    "ExponentialBackoff",
    "NoBackoff",
]
