"""Helpers for safe debug logging.

tokenvote handles API keys and broker credentials and logs raw payloads
at DEBUG. This module redacts sensitive fields before they reach a log
record.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "key",
        "apikey",
        "api_key",
        "firestore_api_key",
        "password",
        "mqtt_password",
        "token",
        "accesstoken",
        "authorization",
        "cookie",
    }
)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        # Large catalogs would flood the log; keep a prefix and a count.
        items = list(value)
        head = [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in items[:20]]
        if len(items) > 20:
            head.append(f"<+{len(items) - 20} more>")
        return head

    return repr(value)


def redact_url(url: str) -> str:
    """Hide the ``key=`` query parameter of a URL."""
    head, sep, query = url.partition("?")
    if not sep:
        return url
    parts = []
    for pair in query.split("&"):
        name, eq, _value = pair.partition("=")
        if eq and name.lower() in _SENSITIVE_VALUE_KEYS:
            parts.append(f"{name}=<redacted>")
        else:
            parts.append(pair)
    return f"{head}?{'&'.join(parts)}"
