"""Custom exception classes for the AI invocation core.

Each failure kind gets its own class so callers can branch on type
rather than probing attributes:

- ValidationError: bad input, never retried
- ConfigurationError: missing or invalid settings, raised at construction
- ProviderError and subclasses: one provider HTTP call failed
- ResponseParseError: model output held no usable string map
- CircuitBreakerOpenError: the breaker refused admission
- TranslationError: terminal translation failure after retries
"""

from typing import Any

import httpx


class AICoreError(Exception):
    """Base exception for all AI core errors."""

    retriable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize AICoreError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for API responses.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API response."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(AICoreError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": error.get("msg", "Invalid value"),
                        "type": error.get("type", "unknown"),
                    }
                )
        return cls(message="Validation failed", errors=errors)


class ConfigurationError(AICoreError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, setting: str | None = None):
        """Initialize ConfigurationError.

        Args:
            message: Description of the problem.
            setting: Name of the offending setting, if known.
        """
        self.setting = setting
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=500,
            details={"setting": setting} if setting else None,
        )


class ProviderError(AICoreError):
    """Raised when a single call to an LLM provider fails."""

    def __init__(
        self,
        message: str,
        provider: str,
        status: int | None = None,
        retriable: bool = False,
        error_code: str = "PROVIDER_ERROR",
    ):
        """Initialize ProviderError.

        Args:
            message: Error message.
            provider: Provider name (e.g., "gemini", "gpt").
            status: Upstream HTTP status, if one was received.
            retriable: Whether another attempt may succeed.
            error_code: Machine-readable error code.
        """
        self.provider = provider
        self.status = status
        self.retriable = retriable
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=502,
            details={"provider": provider, "status": status, "retriable": retriable},
        )


class ProviderTimeoutError(ProviderError):
    """Raised when a provider request exceeds its timeout."""

    def __init__(self, provider: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(
            message=f"{provider} request timed out after {timeout_ms}ms",
            provider=provider,
            retriable=True,
            error_code="PROVIDER_TIMEOUT",
        )


class ProviderConnectionError(ProviderError):
    """Raised when a provider cannot be reached."""

    def __init__(self, provider: str, original_error: str):
        self.original_error = original_error
        super().__init__(
            message=f"{provider} request failed: {original_error}",
            provider=provider,
            retriable=True,
            error_code="PROVIDER_CONNECTION_ERROR",
        )


class UpstreamStatusError(ProviderError):
    """Raised when a provider answers with a non-2xx status.

    Only 429 and 5xx responses are retriable.
    """

    def __init__(self, provider: str, status: int, reason: str = ""):
        super().__init__(
            message=f"{provider} API request failed: {status} {reason}".rstrip(),
            provider=provider,
            status=status,
            retriable=status == 429 or status >= 500,
            error_code="UPSTREAM_STATUS_ERROR",
        )


class EmptyResponseError(ProviderError):
    """Raised when a provider returns no usable text."""

    def __init__(self, provider: str, message: str | None = None):
        super().__init__(
            message=message or f"{provider} API returned empty response",
            provider=provider,
            status=502,
            retriable=True,
            error_code="EMPTY_RESPONSE",
        )


class ResponseParseError(AICoreError):
    """Raised when no candidate in a model response parses as a string map."""

    def __init__(self, raw_text: str, failures: list[tuple[str, str]]):
        """Initialize ResponseParseError.

        Args:
            raw_text: The raw model output.
            failures: (candidate label, reason) for every attempted candidate.
        """
        self.raw_text = raw_text
        self.failures = failures
        super().__init__(
            message="Unable to parse JSON string map from model response",
            error_code="RESPONSE_PARSE_ERROR",
            status_code=502,
            details={
                "raw_text": raw_text[:500],
                "failures": [f"{label}: {reason}" for label, reason in failures],
            },
        )


class CircuitBreakerOpenError(AICoreError):
    """Raised when a circuit breaker rejects an attempt."""

    status = 503

    def __init__(self, key: str, state: str, retry_after_ms: int | None = None):
        """Initialize CircuitBreakerOpenError.

        Args:
            key: Breaker key of the guarded dependency.
            state: Breaker state at rejection time.
            retry_after_ms: Remaining open window, when known.
        """
        self.key = key
        self.state = state
        self.retry_after_ms = retry_after_ms
        if retry_after_ms:
            message = f"Circuit breaker '{key}' is {state}; retry after {retry_after_ms}ms"
        else:
            message = f"Circuit breaker '{key}' is {state}"
        super().__init__(
            message=message,
            error_code="CIRCUIT_BREAKER_OPEN",
            status_code=503,
            details={"breaker": key, "state": state, "retry_after_ms": retry_after_ms},
        )


class FaultInjectedError(AICoreError):
    """Synthetic error raised at an enabled fault-injection checkpoint.

    Treated as transient so a checkpoint inside the retry loop fails
    every attempt.
    """

    retriable = True

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(
            message=f"[fault-injection] {identifier}",
            error_code="FAULT_INJECTED",
        )


class TranslationError(AICoreError):
    """Raised when a translation batch fails after retries."""

    def __init__(self, message: str, retriable: bool = False):
        self.retriable = retriable
        super().__init__(
            message=message,
            error_code="TRANSLATION_ERROR",
            status_code=502,
            details={"retriable": retriable},
        )


def extract_status(error: BaseException) -> int | None:
    """Get the HTTP status carried by an error, if any.

    Args:
        error: Any exception.

    Returns:
        Status code or None.
    """
    status: Any = getattr(error, "status", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status

    # post_json never raises this; callers driving their own httpx client with
    # raise_for_status() do
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code

    return None
