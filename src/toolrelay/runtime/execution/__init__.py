"""Tool routing and execution."""

from .executor import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_MS, ExecuteOptions, execute, execute_many, to_model_content
from .router import ToolRouter
from .sanitize import sanitize_arguments
from .types import RouteFn, ToolCall, ToolUse

__all__ = [
    "execute", "execute_many", "ExecuteOptions", "to_model_content", "DEFAULT_TIMEOUT_MS", "DEFAULT_MAX_RETRIES",
    "ToolRouter", "ToolCall", "ToolUse", "RouteFn", "sanitize_arguments",
]
