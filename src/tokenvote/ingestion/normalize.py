"""Normalization helpers.

Centralizes defensive parsing of loosely typed remote payloads.
"""

from __future__ import annotations

import contextlib
import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        # Exact for 64-bit counters such as Firestore integerValue strings.
        with contextlib.suppress(ValueError):
            return int(value.strip())
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def non_negative_or_zero(value: Any) -> int:
    """Parse a counter, mapping missing, malformed or negative input to 0."""
    parsed = safe_int(value)
    if parsed is None or parsed < 0:
        return 0
    return parsed


def string_tuple(value: Any) -> tuple[str, ...]:
    """Coerce a list-like of tags into a tuple of non-empty strings."""
    if value is None or isinstance(value, (str, bytes)):
        return ()
    try:
        items = list(value)
    except TypeError:
        return ()
    result: list[str] = []
    for item in items:
        text = safe_str(item)
        if text is not None:
            result.append(text)
    return tuple(result)
