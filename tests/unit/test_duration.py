"""Tests for duration parsing."""

import math

import pytest

from aicore.utils.duration import parse_duration_ms, require_duration_ms
from aicore.utils.exceptions import ConfigurationError


class TestParseDurationMs:
    """Tests for parse_duration_ms."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("250ms", 250),
            ("60s", 60_000),
            ("5m", 300_000),
            ("2h", 7_200_000),
            ("  15 S ", 15_000),
            ("10MS", 10),
        ],
    )
    def test_parses_unit_strings(self, value, expected):
        """Strings with a unit scale to milliseconds."""
        assert parse_duration_ms(value) == expected

    def test_bare_number_string_is_seconds(self):
        """A unitless string is read as seconds."""
        assert parse_duration_ms("250") == 250_000

    def test_numbers_are_milliseconds(self):
        """Numeric input is already milliseconds."""
        assert parse_duration_ms(1500) == 1500
        assert parse_duration_ms(12.9) == 12

    @pytest.mark.parametrize(
        "value",
        [None, "", "   ", "abc", "10 days", "-5s", "1.5s", -1, math.inf, math.nan, True],
    )
    def test_invalid_input_returns_none(self, value):
        """Missing or malformed values yield None."""
        assert parse_duration_ms(value) is None


class TestRequireDurationMs:
    """Tests for require_duration_ms."""

    def test_absent_value_is_none(self):
        """Blank settings are treated as unset."""
        assert require_duration_ms(None, "TIMEOUT") is None
        assert require_duration_ms("  ", "TIMEOUT") is None

    def test_valid_value_parses(self):
        """Valid settings are converted."""
        assert require_duration_ms("30s", "TIMEOUT") == 30_000

    def test_malformed_value_raises(self):
        """Malformed settings raise ConfigurationError naming the setting."""
        with pytest.raises(ConfigurationError) as exc_info:
            require_duration_ms("soon", "EXTERNAL_API_RECOVERY_TIMEOUT")

        assert exc_info.value.setting == "EXTERNAL_API_RECOVERY_TIMEOUT"
        assert "EXTERNAL_API_RECOVERY_TIMEOUT" in str(exc_info.value)
