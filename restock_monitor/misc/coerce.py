"""Lenient coercion of JSON config values."""

from __future__ import annotations

from typing import Any

TRUE_STRINGS = {"1", "true", "yes", "on"}


def coerce_positive_int(
    value: Any,
    default: int,
    minimum: int = 1,
    maximum: int | None = None,
) -> int:
    """Coerce a value to a bounded positive integer."""
    floor = max(1, int(minimum))
    fallback = max(floor, int(default))
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = fallback

    if parsed < floor:
        parsed = floor
    if maximum is not None:
        parsed = min(parsed, int(maximum))
    return parsed


def coerce_bool(value: Any, default: bool = False) -> bool:
    """Accept JSON booleans as well as "true"/"false" style strings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_STRINGS
