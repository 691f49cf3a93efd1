"""Tests for the error taxonomy."""

import httpx
import pytest

from aicore.utils.exceptions import (
    CircuitBreakerOpenError,
    EmptyResponseError,
    ProviderConnectionError,
    ProviderTimeoutError,
    TranslationError,
    UpstreamStatusError,
    ValidationError,
    extract_status,
)


class TestErrorTaxonomy:
    """Tests for error attributes and serialization."""

    @pytest.mark.parametrize(
        "error,status,retriable",
        [
            (ProviderTimeoutError("gemini", 1000), None, True),
            (ProviderConnectionError("gemini", "refused"), None, True),
            (UpstreamStatusError("gpt", 429), 429, True),
            (UpstreamStatusError("gpt", 500), 500, True),
            (UpstreamStatusError("gpt", 403), 403, False),
            (EmptyResponseError("gpt"), 502, True),
            (CircuitBreakerOpenError("k", "open"), 503, False),
            (ValidationError("bad"), None, False),
        ],
    )
    def test_status_and_retriable(self, error, status, retriable):
        """Each error kind carries its status and retry flag."""
        assert extract_status(error) == status
        assert error.retriable is retriable

    def test_breaker_error_message_includes_retry_after(self):
        """The message names the key, state, and remaining window."""
        error = CircuitBreakerOpenError("summarizer:gemini", "open", retry_after_ms=1500)

        assert str(error) == "Circuit breaker 'summarizer:gemini' is open; retry after 1500ms"
        assert error.to_dict()["error_code"] == "CIRCUIT_BREAKER_OPEN"
        assert error.to_dict()["details"]["retry_after_ms"] == 1500

    def test_translation_error_flag(self):
        """TranslationError carries the given retriable flag."""
        assert TranslationError("x", retriable=True).retriable is True
        assert TranslationError("x").retriable is False

    def test_extract_status_from_httpx(self):
        """httpx status errors expose their response status."""
        request = httpx.Request("POST", "https://example.com")
        response = httpx.Response(418, request=request)
        error = httpx.HTTPStatusError("teapot", request=request, response=response)

        assert extract_status(error) == 418

    def test_extract_status_ignores_non_int(self):
        """Non-integer status attributes are ignored."""
        error = RuntimeError("x")
        error.status = "500"

        assert extract_status(error) is None
