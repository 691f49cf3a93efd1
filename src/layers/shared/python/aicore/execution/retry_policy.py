"""Retry engine with exponential backoff.

Runs an async action up to `attempts` times. After each failure the
policy's should_retry predicate decides whether another attempt is
made; the wait before retry k is

    initial_delay_ms * backoff_factor ** (k - 1)

When attempts run out, or the predicate declines, the most recent error
is re-raised as-is so callers can still match on its type (for example
a CircuitBreakerOpenError).

Backoff waits use asyncio.sleep, so cancelling the calling task during a
wait aborts the retry loop immediately.

Usage:
    engine = RetryEngine()
    policy = RetryPolicy(attempts=3, initial_delay_ms=250)

    result = await engine.attempt(call_provider, policy)
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


def _always_retry(error: Exception) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    attempts: int = 3
    initial_delay_ms: float = 250.0
    backoff_factor: float = 2.0
    should_retry: Callable[[Exception], bool] = _always_retry
    on_retry: Callable[[Exception, int], None] | None = None

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must be >= 0, got {self.initial_delay_ms}")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

    def delay_ms(self, failed_attempts: int) -> float:
        """Get the wait before the next attempt.

        Args:
            failed_attempts: Number of attempts that have failed so far (1-indexed).

        Returns:
            Delay in milliseconds.
        """
        return self.initial_delay_ms * (self.backoff_factor ** (failed_attempts - 1))


def backoff_delays(policy: RetryPolicy) -> list[float]:
    """Get the full backoff schedule for a policy, in milliseconds."""
    return [policy.delay_ms(k) for k in range(1, policy.attempts)]


class RetryEngine:
    """Bounded-attempt retry loop."""

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """Initialize the retry engine.

        Args:
            sleep: Async sleep taking seconds. Injected by tests.
        """
        self._sleep = sleep
        self.logger = logger.bind(service="retry_engine")

    async def attempt(
        self,
        action: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
    ) -> T:
        """Run an action with retries.

        Args:
            action: Async callable to invoke.
            policy: Retry policy.

        Returns:
            The action's first successful result.

        Raises:
            Exception: The most recent error, unmodified.
        """
        attempt = 0

        while True:
            attempt += 1
            try:
                return await action()
            except Exception as e:
                if attempt >= policy.attempts:
                    self.logger.warning(
                        "Operation failed after max attempts",
                        error=str(e),
                        error_class=type(e).__name__,
                        attempts=attempt,
                    )
                    raise

                if not policy.should_retry(e):
                    self.logger.info(
                        "Operation failed permanently",
                        error=str(e),
                        error_class=type(e).__name__,
                        attempts=attempt,
                    )
                    raise

                delay_ms = policy.delay_ms(attempt)
                if policy.on_retry is not None:
                    policy.on_retry(e, attempt)

                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    attempt=attempt,
                    next_delay_ms=delay_ms,
                )

                if delay_ms > 0:
                    await self._sleep(delay_ms / 1000)


# Preset policies for the invokers
RETRY_PRESETS = {
    "summarizer": RetryPolicy(
        attempts=3,
        initial_delay_ms=250,
        backoff_factor=2.0,
    ),
    "translation": RetryPolicy(
        attempts=3,
        initial_delay_ms=500,
        backoff_factor=2.0,
    ),
}


def get_retry_policy(preset: str = "summarizer", **overrides: Any) -> RetryPolicy:
    """Get a retry policy from a preset.

    Args:
        preset: Name of the preset (summarizer, translation).
        **overrides: Field values replacing the preset's.

    Returns:
        RetryPolicy instance.
    """
    base = RETRY_PRESETS.get(preset, RETRY_PRESETS["summarizer"])
    return replace(base, **overrides) if overrides else base


async def with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> T:
    """Execute a function with retry logic.

    Convenience function for one-off retries.

    Args:
        func: Async function to execute.
        policy: Optional retry policy.

    Returns:
        Function result.

    Raises:
        Exception: The last error if all retries fail.
    """
    return await RetryEngine().attempt(func, policy or RetryPolicy())
