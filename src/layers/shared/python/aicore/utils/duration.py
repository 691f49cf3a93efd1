"""Human-readable duration parsing.

Accepts values like "250ms", "60s", "5m", "1h" or a bare number. A bare
number in a string is read as seconds, matching how recovery timeouts are
written in environment configuration. Numeric (int/float) inputs are
already milliseconds.
"""

import math
import re

from aicore.utils.exceptions import ConfigurationError

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*(ms|s|m|h)?\s*$", re.IGNORECASE)

_UNIT_TO_MS = {
    "ms": 1,
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
}


def parse_duration_ms(value: str | int | float | None) -> int | None:
    """Parse a duration into milliseconds.

    Args:
        value: Duration string, or a number of milliseconds.

    Returns:
        Milliseconds, or None when the value is missing or malformed.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            return None
        return int(value)

    if not isinstance(value, str):
        return None

    match = _DURATION_PATTERN.match(value)
    if not match:
        return None

    amount = int(match.group(1))
    unit = (match.group(2) or "s").lower()
    return amount * _UNIT_TO_MS[unit]


def require_duration_ms(value: str | int | float | None, setting: str) -> int | None:
    """Parse a configured duration, failing loudly when it is malformed.

    Args:
        value: Raw configured value.
        setting: Setting name used in the error message.

    Returns:
        Milliseconds, or None when the value is absent or blank.

    Raises:
        ConfigurationError: If a value is present but cannot be parsed.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    parsed = parse_duration_ms(value)
    if parsed is None:
        raise ConfigurationError(
            f"Invalid duration for {setting}: {value!r} (expected e.g. '250ms', '60s', '5m')",
            setting=setting,
        )
    return parsed
