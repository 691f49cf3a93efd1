"""Recover a flat string-to-string map from noisy model output.

Models asked for JSON often wrap it in a markdown fence or surround it
with commentary. Candidates are tried in order until one parses as a
JSON object whose every value is a string:

1. The trimmed response text
2. The body of the first fenced code block (``` or ```json)
3. When the text does not start with "{", the first balanced {...}
   object, scanned with awareness of quoted strings and escapes

Arrays, nested objects, and non-string values are rejected even when
the JSON itself is valid.
"""

import json
import re

import structlog

from aicore.utils.exceptions import ResponseParseError

logger = structlog.get_logger()

_FENCE_PATTERN = re.compile(r"```(?:json)?[ \t]*\r?\n?(.*?)```", re.IGNORECASE | re.DOTALL)


def extract_fenced_block(text: str) -> str | None:
    """Get the inner content of the first fenced code block.

    Args:
        text: Raw text.

    Returns:
        Stripped block content, or None if there is no complete fence.
    """
    match = _FENCE_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).strip()


def extract_balanced_object(text: str) -> str | None:
    """Get the first brace-balanced {...} substring.

    Braces inside double-quoted strings are ignored, and a backslash
    escapes the following character inside a string.

    Args:
        text: Raw text.

    Returns:
        The balanced substring, or None if no object closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    return None


def _as_string_map(candidate: str) -> dict[str, str]:
    """Parse a candidate, requiring a flat object of string values.

    Raises:
        ValueError: If the candidate is not valid JSON or not a string map.
    """
    parsed = json.loads(candidate)

    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")

    for key, value in parsed.items():
        if not isinstance(value, str):
            raise ValueError(f"value for key {key!r} is {type(value).__name__}, not a string")

    return parsed


def parse_string_map(raw: str) -> dict[str, str]:
    """Parse model output into a dict of strings.

    Args:
        raw: Raw model response text.

    Returns:
        Mapping of keys to string values.

    Raises:
        ResponseParseError: If no candidate parses; carries the raw text
            and the reason each candidate was rejected.
    """
    trimmed = (raw or "").strip()

    candidates: list[tuple[str, str]] = [("full_text", trimmed)]

    fenced = extract_fenced_block(trimmed)
    if fenced is not None:
        candidates.append(("fenced_block", fenced))

    if not trimmed.startswith("{"):
        embedded = extract_balanced_object(trimmed)
        if embedded is not None:
            candidates.append(("embedded_object", embedded))

    failures: list[tuple[str, str]] = []
    seen: set[str] = set()

    for label, candidate in candidates:
        if candidate in seen:
            continue
        seen.add(candidate)

        try:
            return _as_string_map(candidate)
        except (ValueError, RecursionError) as e:
            # json.JSONDecodeError is a ValueError subclass; deep nesting raises RecursionError
            failures.append((label, str(e)))

    logger.warning(
        "Failed to parse model response",
        candidates=[label for label, _ in failures],
        response_length=len(trimmed),
    )
    raise ResponseParseError(raw_text=raw or "", failures=failures)
