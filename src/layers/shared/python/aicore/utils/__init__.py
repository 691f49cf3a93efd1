"""Utility functions and helpers."""

from aicore.utils.duration import parse_duration_ms, require_duration_ms
from aicore.utils.exceptions import (
    AICoreError,
    CircuitBreakerOpenError,
    ConfigurationError,
    EmptyResponseError,
    FaultInjectedError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
    ResponseParseError,
    TranslationError,
    UpstreamStatusError,
    ValidationError,
    extract_status,
)

__all__ = [
    # Durations
    "parse_duration_ms",
    "require_duration_ms",
    # Exceptions
    "AICoreError",
    "CircuitBreakerOpenError",
    "ConfigurationError",
    "EmptyResponseError",
    "FaultInjectedError",
    "ProviderConnectionError",
    "ProviderError",
    "ProviderTimeoutError",
    "ResponseParseError",
    "TranslationError",
    "UpstreamStatusError",
    "ValidationError",
    "extract_status",
]
