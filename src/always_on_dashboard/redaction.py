"""Helpers for redacting API keys and tokens from logs and error messages."""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

_SECRET_NAMES = r"authorization|token|secret|appid|api[_-]?key|credential"

_SENSITIVE_KEY_RE = re.compile(f"({_SECRET_NAMES})", re.IGNORECASE)
_AUTH_TOKEN_INLINE_RE = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9\-._~+/]+=*")
# httpx errors echo the request URL, and OpenWeather takes its key as ``appid``.
_QUERY_SECRET_RE = re.compile(r"(?i)([?&](?:appid|api_?key|token)=)[^&\s'\"]+")
_KEY_VALUE_SECRET_RE = re.compile(
    rf"(?i)\b({_SECRET_NAMES})\s*[:=]\s*([^\s,;&'\"]+)"
)


def sanitize_text(text: str) -> str:
    """Redact secrets embedded in URLs, headers and ``key=value`` text."""
    sanitized = _QUERY_SECRET_RE.sub(r"\1" + REDACTED, text)
    sanitized = _AUTH_TOKEN_INLINE_RE.sub(r"\1 " + REDACTED, sanitized)
    return _KEY_VALUE_SECRET_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", sanitized)


def sanitize_for_logging(value: Any) -> Any:
    """Recursively redact sensitive keys and strings in log context payloads."""
    if isinstance(value, dict):
        return {
            key: REDACTED if _SENSITIVE_KEY_RE.search(str(key)) else sanitize_for_logging(child)
            for key, child in value.items()
        }
    if isinstance(value, (list, tuple)):
        items = [sanitize_for_logging(item) for item in value]
        return items if isinstance(value, list) else tuple(items)
    if isinstance(value, str):
        return sanitize_text(value)
    return value
