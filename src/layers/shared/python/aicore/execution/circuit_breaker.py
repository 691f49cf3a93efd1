"""Circuit breaker for LLM provider calls.

Implements the Circuit Breaker pattern so a failing upstream model API
is not hammered, and traffic resumes automatically once it recovers.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Dependency is failing, requests are rejected immediately
- HALF_OPEN: Probing; at most half_open_max_calls requests in flight

Transitions:
- CLOSED → OPEN: When failure_count reaches failure_threshold
- OPEN → HALF_OPEN: On the next admission attempt after recovery_timeout_ms
- HALF_OPEN → CLOSED: On the first success
- HALF_OPEN → OPEN: On any failure

State is keyed by a string naming the guarded dependency and lives in a
CircuitBreakerRegistry, so every call site using the same key shares one
state machine. Config and state are stored separately; re-configuring a
key keeps its accumulated state.

Every mutation below is a single synchronous step with no await, so
concurrent asyncio tasks sharing a key cannot interleave partial
updates. A multi-threaded host would need a lock per state object.
"""

import math
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Iterator

import structlog

from aicore.observability.metrics import MetricsSink, get_metrics_sink
from aicore.utils.duration import parse_duration_ms
from aicore.utils.exceptions import CircuitBreakerOpenError

logger = structlog.get_logger()

TRANSITION_METRIC = "ai.circuit_breaker.transition"
BLOCKED_METRIC = "ai.circuit_breaker.blocked"

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_RECOVERY_TIMEOUT_MS = 60_000
DEFAULT_HALF_OPEN_MAX_CALLS = 1


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for a circuit breaker."""

    key: str
    enabled: bool = True
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD  # Failures before opening
    recovery_timeout_ms: int = DEFAULT_RECOVERY_TIMEOUT_MS  # Open window before probing
    half_open_max_calls: int = DEFAULT_HALF_OPEN_MAX_CALLS  # Concurrent probes

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Circuit breaker key is required")
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold}")
        if self.recovery_timeout_ms < 0:
            raise ValueError(f"recovery_timeout_ms must be >= 0, got {self.recovery_timeout_ms}")
        if self.half_open_max_calls < 1:
            raise ValueError(f"half_open_max_calls must be >= 1, got {self.half_open_max_calls}")

    @classmethod
    def from_options(
        cls,
        key: str,
        enabled: bool = True,
        failure_threshold: int | None = None,
        recovery_timeout: str | int | float | None = None,
        recovery_timeout_ms: int | None = None,
        half_open_max_calls: int | None = None,
    ) -> "CircuitBreakerConfig":
        """Build a config from loosely specified options.

        Out-of-range counts are clamped to 1. recovery_timeout accepts a
        duration string ("60s", "5m") and is used when recovery_timeout_ms
        is not given.
        """
        timeout_ms = recovery_timeout_ms
        if timeout_ms is None:
            timeout_ms = parse_duration_ms(recovery_timeout)
        if timeout_ms is None:
            timeout_ms = DEFAULT_RECOVERY_TIMEOUT_MS

        return cls(
            key=key,
            enabled=enabled,
            failure_threshold=max(
                1, DEFAULT_FAILURE_THRESHOLD if failure_threshold is None else failure_threshold
            ),
            recovery_timeout_ms=max(0, int(timeout_ms)),
            half_open_max_calls=max(
                1, DEFAULT_HALF_OPEN_MAX_CALLS if half_open_max_calls is None else half_open_max_calls
            ),
        )


@dataclass
class CircuitBreakerState:
    """Mutable state of one circuit breaker key."""

    key: str
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    opened_at: float | None = None
    half_open_in_flight: int = 0
    transitions: int = 0  # Bumped on every state change


class CircuitBreaker:
    """Per-key circuit breaker state machine.

    Example:
        breaker = registry.get(CircuitBreakerConfig(key="summarizer:gemini"))

        breaker.ensure_can_attempt()
        release = breaker.before_request()
        try:
            result = await call_provider()
            breaker.record_success()
        except Exception:
            breaker.record_failure()
            raise
        finally:
            release()
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        state: CircuitBreakerState,
        metrics: MetricsSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the circuit breaker.

        Args:
            config: Breaker configuration.
            state: Shared state for config.key (owned by the registry).
            metrics: Metrics sink for transitions and blocks.
            clock: Monotonic clock in seconds.
        """
        self.config = config
        self._state = state
        self._metrics = metrics
        self._clock = clock
        self.logger = logger.bind(service="circuit_breaker", key=config.key)

    @property
    def key(self) -> str:
        return self.config.key

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state.state

    @property
    def failure_count(self) -> int:
        return self._state.failure_count

    @property
    def half_open_in_flight(self) -> int:
        return self._state.half_open_in_flight

    @property
    def metrics(self) -> MetricsSink:
        return self._metrics or get_metrics_sink()

    def update_config(self, config: CircuitBreakerConfig) -> None:
        """Replace the configuration, keeping accumulated state."""
        if config.key != self.config.key:
            raise ValueError(f"Cannot re-key breaker '{self.config.key}' to '{config.key}'")
        self.config = config

    def ensure_can_attempt(self) -> None:
        """Check admission without taking a slot.

        Raises:
            CircuitBreakerOpenError: If the breaker is open within its
                recovery window, or half-open with every probe slot taken.
        """
        if not self.config.enabled:
            return

        state = self._state
        if state.state == CircuitState.OPEN:
            remaining_ms = self._remaining_open_ms()
            if remaining_ms <= 0:
                return
            self._on_blocked(retry_after_ms=remaining_ms)
            raise CircuitBreakerOpenError(self.key, state.state.value, remaining_ms)

        if state.state == CircuitState.HALF_OPEN:
            if state.half_open_in_flight >= self.config.half_open_max_calls:
                self._on_blocked()
                raise CircuitBreakerOpenError(self.key, state.state.value)

    def before_request(self) -> Callable[[], None]:
        """Admit one attempt.

        Flips OPEN → HALF_OPEN once the recovery window has elapsed and
        takes a probe slot while HALF_OPEN.

        Returns:
            A release function. Call it exactly once when the attempt ends,
            whatever the outcome; extra calls are ignored.

        Raises:
            CircuitBreakerOpenError: If admission is refused.
        """
        if not self.config.enabled:
            return _noop

        self.ensure_can_attempt()

        if self._state.state == CircuitState.OPEN:
            self._transition_to(CircuitState.HALF_OPEN)

        if self._state.state != CircuitState.HALF_OPEN:
            return _noop

        self._state.half_open_in_flight += 1
        window = self._state.transitions
        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True
            if self._state.transitions != window:
                return
            self._state.half_open_in_flight = max(0, self._state.half_open_in_flight - 1)

        return release

    @contextmanager
    def admit(self) -> Iterator[None]:
        """Scoped admission: the slot is released on every exit path."""
        release = self.before_request()
        try:
            yield
        finally:
            release()

    def record_success(self) -> None:
        """Record a successful request."""
        if not self.config.enabled:
            return

        if self._state.state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.CLOSED)
        elif self._state.state == CircuitState.CLOSED:
            self._state.failure_count = 0

    def record_failure(self) -> None:
        """Record a failed request."""
        if not self.config.enabled:
            return

        if self._state.state == CircuitState.HALF_OPEN:
            # A single failed probe re-opens the circuit
            self._transition_to(CircuitState.OPEN)
            return

        if self._state.state == CircuitState.CLOSED:
            self._state.failure_count += 1
            if self._state.failure_count >= self.config.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        self._transition_to(CircuitState.CLOSED)
        self._state.failure_count = 0
        self.logger.info("Circuit breaker manually reset")

    def _remaining_open_ms(self) -> int:
        opened_at = self._state.opened_at
        if opened_at is None:
            return 0
        elapsed_ms = (self._clock() - opened_at) * 1000
        return max(0, math.ceil(self.config.recovery_timeout_ms - elapsed_ms))

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state.

        Args:
            new_state: New circuit state.
        """
        state = self._state
        old_state = state.state
        if old_state == new_state:
            return

        state.state = new_state
        state.transitions += 1
        state.failure_count = 0
        state.half_open_in_flight = 0
        state.opened_at = self._clock() if new_state == CircuitState.OPEN else None

        self.metrics.record_metric(
            TRANSITION_METRIC,
            1,
            {"key": self.key, "state": new_state.value},
        )

        log = self.logger.error if new_state == CircuitState.OPEN else self.logger.info
        log(
            "Circuit breaker state transition",
            old_state=old_state.value,
            new_state=new_state.value,
        )

    def _on_blocked(self, retry_after_ms: int | None = None) -> None:
        self.metrics.record_metric(
            BLOCKED_METRIC,
            1,
            {"key": self.key, "state": self._state.state.value},
        )
        self.logger.warning(
            "Circuit breaker blocked request",
            state=self._state.state.value,
            retry_after_ms=retry_after_ms,
        )


def _noop() -> None:
    return None


class CircuitBreakerRegistry:
    """Registry of circuit breakers keyed by dependency.

    Breakers for the same key share one CircuitBreakerState. State is
    created lazily on first use and lives as long as the registry
    (process memory only).

    Example:
        registry = CircuitBreakerRegistry()
        breaker = registry.get(CircuitBreakerConfig(key="translation:gpt"))
    """

    def __init__(
        self,
        metrics: MetricsSink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the circuit breaker registry.

        Args:
            metrics: Metrics sink handed to every breaker.
            clock: Monotonic clock in seconds handed to every breaker.
        """
        self._metrics = metrics
        self._clock = clock
        self._states: dict[str, CircuitBreakerState] = {}
        self._breakers: dict[str, CircuitBreaker] = {}
        self.logger = logger.bind(service="circuit_breaker_registry")

    def get(self, config: CircuitBreakerConfig) -> CircuitBreaker:
        """Get or create the breaker for config.key.

        An existing breaker adopts the new config; its state is kept.

        Args:
            config: Breaker configuration.

        Returns:
            CircuitBreaker instance.
        """
        breaker = self._breakers.get(config.key)
        if breaker is not None:
            breaker.update_config(config)
            return breaker

        breaker = CircuitBreaker(
            config=config,
            state=self._get_or_create_state(config.key),
            metrics=self._metrics,
            clock=self._clock,
        )
        self._breakers[config.key] = breaker
        self.logger.debug(
            "Created circuit breaker",
            key=config.key,
            enabled=config.enabled,
            failure_threshold=config.failure_threshold,
            recovery_timeout_ms=config.recovery_timeout_ms,
        )
        return breaker

    def get_state(self, key: str) -> CircuitBreakerState | None:
        """Get the state for a key, or None if the key was never used."""
        return self._states.get(key)

    def reset(self, key: str) -> None:
        """Reset a circuit breaker to closed state.

        Args:
            key: Breaker key.
        """
        breaker = self._breakers.get(key)
        if breaker is not None:
            breaker.reset()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers.

        Returns:
            Dict of breaker statuses keyed by breaker key.
        """
        result: dict[str, dict[str, Any]] = {}
        for key, state in self._states.items():
            breaker = self._breakers.get(key)
            result[key] = {
                "state": state.state.value,
                "failure_count": state.failure_count,
                "opened_at": state.opened_at,
                "half_open_in_flight": state.half_open_in_flight,
                "config": asdict(breaker.config) if breaker else None,
            }
        return result

    def clear(self) -> None:
        """Drop every breaker and state."""
        self._states.clear()
        self._breakers.clear()

    def _get_or_create_state(self, key: str) -> CircuitBreakerState:
        state = self._states.get(key)
        if state is None:
            state = CircuitBreakerState(key=key)
            self._states[key] = state
        return state


# Singleton instance
_circuit_breaker_registry: CircuitBreakerRegistry | None = None


def get_circuit_breaker_registry() -> CircuitBreakerRegistry:
    """Get the global CircuitBreakerRegistry instance.

    Returns:
        CircuitBreakerRegistry instance.
    """
    global _circuit_breaker_registry
    if _circuit_breaker_registry is None:
        _circuit_breaker_registry = CircuitBreakerRegistry()
    return _circuit_breaker_registry
