"""Argument scrubbing for spans and logs."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS = ("password", "token", "secret", "key", "auth", "credential", "api_key")
_MAX_STRING = 200

REDACTED = "[REDACTED]"
TRUNCATED_SUFFIX = "...[truncated]"


def sanitize_arguments(args: object) -> dict[str, Any]:
    """Top-level copy of ``args`` with secrets redacted and long strings cut.

    >>> sanitize_arguments({"query": "hi", "api_key": "sk-123"})
    {'query': 'hi', 'api_key': '[REDACTED]'}
    """
    if not isinstance(args, Mapping):
        return {}
    out: dict[str, Any] = {}
    for key, value in args.items():
        lowered = str(key).lower()
        if any(s in lowered for s in _SENSITIVE_KEYS):
            out[key] = REDACTED
        elif isinstance(value, str) and len(value) > _MAX_STRING:
            out[key] = value[:_MAX_STRING] + TRUNCATED_SUFFIX
        else:
            out[key] = value
    return out
