"""Failure classification and model-facing error text.

``to_tool_error`` is total: any exception, MCP error payload, or stray value
maps onto the closed ToolErrorCode taxonomy with a retryability flag.
``format_error_for_claude`` turns that into one short advisory sentence.

Classification is substring-based on purpose. Upstream servers report
failures as free text far more often than as structured codes, so the
message is the most reliable signal available. A digit run such as a port
number can trip the 400/401/403/404 checks; that imprecision is known.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from pydantic import BaseModel

from .errors import OperationAborted, ToolError, ToolErrorCode, ToolException, is_retryable

_MCP_ERROR_FALLBACK = "MCP tool returned an error response"

_TIMEOUT_MARKERS = ("timeout", "timed out", "aborted")
_NETWORK_MARKERS = ("econnrefused", "econnreset", "network", "dns", "connection refused", "name or service not known")
_TIMEOUT_TYPES: tuple[type[BaseException], ...] = (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException, OperationAborted)
_NETWORK_TYPES: tuple[type[BaseException], ...] = (httpx.NetworkError, ConnectionError)

# Codes that already carry a precise classification; generic failures get re-parsed
_SPECIFIC_CODES: frozenset[ToolErrorCode] = frozenset({
    ToolErrorCode.RATE_LIMITED,
    ToolErrorCode.MCP_CONNECTION_FAILED,
    ToolErrorCode.TOOL_INVALID_INPUT,
    ToolErrorCode.TOOL_UNAVAILABLE,
    ToolErrorCode.TOOL_NOT_FOUND,
})


# ═══════════════════════════════════════════════════════════════════════════════
# MCP Error Payloads
# ═══════════════════════════════════════════════════════════════════════════════


def _as_mapping(value: object) -> Mapping[str, Any] | None:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    return value if isinstance(value, Mapping) else None


def is_mcp_error_payload(value: object) -> bool:
    """True for ``{isError: true, content: [...]}`` shaped values."""
    payload = _as_mapping(value)
    return payload is not None and payload.get("isError") is True and "content" in payload


def extract_mcp_error_message(value: object) -> str:
    """Join the text blocks of an MCP error payload."""
    payload = _as_mapping(value) or {}
    blocks = payload.get("content")
    if not isinstance(blocks, Sequence) or isinstance(blocks, str):
        return _MCP_ERROR_FALLBACK
    texts = [b["text"] for b in blocks if isinstance(b, Mapping) and isinstance(b.get("text"), str) and b["text"]]
    return "\n".join(texts) if texts else _MCP_ERROR_FALLBACK


# ═══════════════════════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════════════════════


def to_tool_error(value: object) -> ToolError:
    """Classify an arbitrary failure into a ToolError. Never raises."""
    if isinstance(value, ToolError):
        return value
    if isinstance(value, ToolException):
        return value.error
    if is_mcp_error_payload(value):
        return ToolError(code=ToolErrorCode.TOOL_EXECUTION_FAILED, message=extract_mcp_error_message(value), retryable=False)

    message = str(value) if not isinstance(value, BaseException) else (str(value) or type(value).__name__)
    m = message.lower()

    if "429" in m or "rate limit" in m:
        return ToolError(code=ToolErrorCode.RATE_LIMITED, message=message, retryable=True)

    if any(k in m for k in _TIMEOUT_MARKERS) or isinstance(value, _TIMEOUT_TYPES):
        return ToolError(code=ToolErrorCode.TOOL_EXECUTION_FAILED, message=message, retryable=True)

    if any(k in m for k in _NETWORK_MARKERS) or isinstance(value, _NETWORK_TYPES):
        return ToolError(code=ToolErrorCode.MCP_CONNECTION_FAILED, message=message, retryable=True)

    if "401" in m or "403" in m:
        return ToolError(code=ToolErrorCode.TOOL_UNAVAILABLE, message=f"Auth error: {message}", retryable=False)

    if "400" in m or "404" in m:
        return ToolError(code=ToolErrorCode.TOOL_INVALID_INPUT, message=message, retryable=False)

    return ToolError(code=ToolErrorCode.TOOL_EXECUTION_FAILED, message=message, retryable=is_retryable(value))


def normalize_tool_error(error: ToolError) -> ToolError:
    """Re-parse generic failures so rate limits and network errors are never missed.

    Specific codes pass through untouched. A generic error is re-classified from
    its message, keeping an upstream ``retryable=True`` (e.g. HTTP 5xx).
    """
    if error.code in _SPECIFIC_CODES:
        return error
    normalized = to_tool_error(Exception(error.message))
    if error.retryable and not normalized.retryable:
        return normalized.model_copy(update={"retryable": True})
    return normalized


# ═══════════════════════════════════════════════════════════════════════════════
# Model-Facing Text
# ═══════════════════════════════════════════════════════════════════════════════

_ADVICE: dict[ToolErrorCode, str] = {
    ToolErrorCode.RATE_LIMITED: "The {tool} tool is rate limited right now. Please wait a bit and try again.",
    ToolErrorCode.TOOL_INVALID_INPUT: "The {tool} tool request was invalid. Try rephrasing or providing required fields.",
    ToolErrorCode.TOOL_NOT_FOUND: "The {tool} tool is not available.",
    ToolErrorCode.MCP_CONNECTION_FAILED: "I couldn't reach the {tool} tool service. Try again in a moment.",
    ToolErrorCode.TOOL_UNAVAILABLE: "The {tool} tool is unavailable right now.",
}
_DEFAULT_ADVICE = "The {tool} tool failed. Try again or use a different approach."


def format_error_for_claude(tool_name: str, error: ToolError) -> str:
    """One short, non-technical sentence naming the tool."""
    return _ADVICE.get(error.code, _DEFAULT_ADVICE).format(tool=tool_name)
