"""Flag-driven fault injection for resilience testing.

Named checkpoints in the invokers call maybe_inject(); when the
checkpoint's identifier is enabled a synthetic FaultInjectedError is
raised, so retry, circuit-breaker and fallback paths can be exercised
without faking the network layer.

Flag sources:
1. Local flags passed to a harness (per service instance)
2. Process flags set with enable_fault_injection()
3. The FAULT_INJECTION environment variable (comma separated)

A "*" flag enables every checkpoint.

Usage:
    faults = FaultInjectionHarness(flags=["summarizer.retry-attempt"])
    faults.maybe_inject("summarizer.retry-attempt")  # raises
"""

import os
from typing import Callable, Iterable

import structlog

from aicore.utils.exceptions import FaultInjectedError

logger = structlog.get_logger()

WILDCARD = "*"
FAULT_INJECTION_ENV = "FAULT_INJECTION"

_process_flags: set[str] = set()


def _parse_flags(raw: Iterable[str]) -> set[str]:
    return {flag.strip() for flag in raw if flag and flag.strip()}


def _env_flags() -> set[str]:
    raw = os.environ.get(FAULT_INJECTION_ENV, "")
    return _parse_flags(raw.split(","))


def is_fault_enabled(identifier: str) -> bool:
    """Check the process-wide flag source for an identifier.

    Args:
        identifier: Checkpoint identifier.

    Returns:
        True if enabled by process flags or the environment.
    """
    flags = _process_flags | _env_flags()
    return WILDCARD in flags or identifier in flags


def enable_fault_injection(identifier: str) -> None:
    """Enable a checkpoint for the whole process."""
    _process_flags.update(_parse_flags([identifier]))
    logger.warning("Fault injection enabled", identifier=identifier)


def disable_fault_injection(identifier: str | None = None) -> None:
    """Disable one process-wide checkpoint, or all of them when None."""
    if identifier is None:
        _process_flags.clear()
    else:
        _process_flags.discard(identifier.strip())


class FaultInjectionHarness:
    """Deterministic error injection at named checkpoints."""

    def __init__(
        self,
        flags: Iterable[str] = (),
        global_source: Callable[[str], bool] | None = is_fault_enabled,
    ):
        """Initialize the harness.

        Args:
            flags: Locally enabled identifiers ("*" enables all).
            global_source: Process-wide lookup, or None to ignore it.
        """
        self.flags = frozenset(_parse_flags(flags))
        self._global_source = global_source

    def is_enabled(self, identifier: str) -> bool:
        """Check whether a checkpoint should fail.

        Args:
            identifier: Checkpoint identifier.

        Returns:
            True if a local flag or the global source enables it.
        """
        if WILDCARD in self.flags or identifier in self.flags:
            return True
        if self._global_source is None:
            return False
        return self._global_source(identifier)

    def maybe_inject(
        self,
        identifier: str,
        error_factory: Callable[[], Exception] | None = None,
    ) -> None:
        """Raise a synthetic error if the checkpoint is enabled.

        Args:
            identifier: Checkpoint identifier.
            error_factory: Optional factory for the raised error.

        Raises:
            FaultInjectedError: Or the factory's error, when enabled.
        """
        if not self.is_enabled(identifier):
            return

        logger.debug("Injecting fault", identifier=identifier)
        raise error_factory() if error_factory else FaultInjectedError(identifier)
