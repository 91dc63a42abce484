"""Unified error handling for toolrelay.

- ToolErrorCode/ToolError/ToolException: closed taxonomy and structured errors
- Result/Ok/Err/ToolResult: never-raise return type for every public entry point
- to_tool_error/format_error_for_claude: classification and model-facing text
"""

from typing import Any, TypeAlias, TypeVar

from .errors import JsonDict, OperationAborted, ToolError, ToolErrorCode, ToolException, is_retryable
from .normalize import (
    extract_mcp_error_message,
    format_error_for_claude,
    is_mcp_error_payload,
    normalize_tool_error,
    to_tool_error,
)
from .result import Err, Ok, Result

T = TypeVar("T")

ToolResult: TypeAlias = Result[T, ToolError]


def tool_failure(code: ToolErrorCode | str, message: str, *, retryable: bool = False) -> Result[Any, ToolError]:
    """Shorthand for ``Err(ToolError(...))``."""
    return Err(ToolError.create(code, message, retryable=retryable))


__all__ = [
    # Errors
    "ToolErrorCode", "ToolError", "ToolException", "OperationAborted", "is_retryable", "JsonDict",
    # Result
    "Result", "Ok", "Err", "ToolResult", "tool_failure",
    # Classification
    "to_tool_error", "normalize_tool_error", "format_error_for_claude",
    "is_mcp_error_payload", "extract_mcp_error_message",
]
