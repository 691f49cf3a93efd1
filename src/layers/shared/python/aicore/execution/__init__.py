"""Execution infrastructure for fault-tolerant model invocation.

This module provides the components for reliable provider calls:
- CircuitBreaker: Stops calls to a failing dependency, probes for recovery
- RetryEngine: Bounded attempts with exponential backoff
- FaultInjectionHarness: Deterministic errors at named checkpoints
"""

from aicore.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitBreakerState,
    CircuitState,
    get_circuit_breaker_registry,
)
from aicore.execution.fault_injection import (
    FaultInjectionHarness,
    disable_fault_injection,
    enable_fault_injection,
    is_fault_enabled,
)
from aicore.execution.retry_policy import (
    RETRY_PRESETS,
    RetryEngine,
    RetryPolicy,
    backoff_delays,
    get_retry_policy,
    with_retry,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitBreakerState",
    "CircuitState",
    "get_circuit_breaker_registry",
    # Fault injection
    "FaultInjectionHarness",
    "disable_fault_injection",
    "enable_fault_injection",
    "is_fault_enabled",
    # Retry
    "RETRY_PRESETS",
    "RetryEngine",
    "RetryPolicy",
    "backoff_delays",
    "get_retry_policy",
    "with_retry",
]
