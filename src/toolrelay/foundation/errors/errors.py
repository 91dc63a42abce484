"""Standardized error model for tool execution.

Provides the closed error-code taxonomy and the structured error carried by
every failed ToolResult. Uses Pydantic for validation and serialization.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

JsonDict = dict[str, Any]

_UNKNOWN_MESSAGE = "Unknown tool failure"


class ToolErrorCode(StrEnum):
    """Closed set of failure classes surfaced to the agent loop.

    Drives retry decisions and the advisory text returned to the model.
    """
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    TOOL_INVALID_INPUT = "TOOL_INVALID_INPUT"
    TOOL_UNAVAILABLE = "TOOL_UNAVAILABLE"
    TOOL_EXECUTION_FAILED = "TOOL_EXECUTION_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    MCP_CONNECTION_FAILED = "MCP_CONNECTION_FAILED"


class ToolError(BaseModel):
    """Structured error for a failed tool call.

    Attributes:
        code: Failure class from the closed taxonomy
        message: Human-readable description (never empty)
        retryable: Advisory hint for the retry layer; auth-class failures
            are never retried regardless of this flag
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="forbid",
        json_schema_extra={
            "title": "Tool Error",
            "examples": [{"code": "RATE_LIMITED", "message": "HTTP 429: Too Many Requests", "retryable": True}],
        },
    )

    code: ToolErrorCode = ToolErrorCode.TOOL_EXECUTION_FAILED
    message: str = Field(default=_UNKNOWN_MESSAGE)
    retryable: bool = False

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: object) -> str:
        """Accept exceptions and blank strings; always end with some text."""
        text = str(v).strip() if v is not None else ""
        return text or _UNKNOWN_MESSAGE

    @classmethod
    def create(cls, code: ToolErrorCode | str, message: str, *, retryable: bool = False) -> Self:
        return cls(code=ToolErrorCode(code), message=message, retryable=retryable)

    def with_message(self, message: str) -> ToolError:
        """Copy with a replaced message (code and retryability kept)."""
        return ToolError(code=self.code, message=message, retryable=self.retryable)

    def to_dict(self) -> JsonDict:
        return {"code": self.code.value, "message": self.message, "retryable": self.retryable}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ToolException(Exception):
    """Exception wrapping a ToolError, for handlers that prefer raising."""

    __slots__ = ("error",)

    def __init__(self, error: ToolError) -> None:
        self.error = error
        super().__init__(error.message)

    @classmethod
    def create(cls, code: ToolErrorCode | str, message: str, *, retryable: bool = False) -> Self:
        return cls(ToolError.create(code, message, retryable=retryable))


class OperationAborted(Exception):
    """Raised when a CancelToken fires before the awaited operation finished."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or "Operation aborted"
        super().__init__(self.reason)


_RETRYABLE_MARKERS: tuple[str, ...] = ("timeout", "rate limit", "429", "503", "econnreset", "econnrefused")


def is_retryable(error: object) -> bool:
    """Best-effort check: does this exception look transient?

    Only exceptions are considered; any other value is not retryable.
    """
    if not isinstance(error, BaseException):
        return False
    message = str(error).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)
