"""toolrelay: tool execution and MCP integration for agent loops.

Discovers tools on remote MCP servers, exposes them next to built-in tools in
the calling model's format, and executes tool calls under timeout, retry and
error normalization so one flaky server never breaks the agent turn.

Quick Start:
    >>> from toolrelay import (
    ...     ExecuteOptions, HealthTracker, ToolDiscovery, ToolRegistry, ToolRouter, execute, get_settings,
    ... )
    >>> settings = get_settings()
    >>> registry, health = ToolRegistry(), HealthTracker()
    >>> await ToolDiscovery(registry, settings.servers(), health=health).discover_all(trace_id="turn-1")
    >>> tools = [t.to_dict() for t in registry.get_tools_for_claude()]
    >>> router = ToolRouter(registry, settings.servers(), health=health)
    >>> result = await execute("rube__search", "toolu_01", {"query": "hi"}, router, ExecuteOptions(trace_id="turn-1"))
    >>> result.data if result.success else result.error.message

Every public entry point returns a ToolResult (Ok/Err) instead of raising.
"""

from __future__ import annotations

from .ext.mcp import HealthTracker, McpClient, McpTool, ServerHealth, ToolDiscovery, parse_name, to_calling_tool
from .foundation.config import McpServerConfig, ToolrelaySettings, get_settings
from .foundation.errors import (
    Err,
    Ok,
    Result,
    ToolError,
    ToolErrorCode,
    ToolException,
    ToolResult,
    format_error_for_claude,
    to_tool_error,
)
from .foundation.registry import CallingTool, ToolCandidate, ToolRegistry
from .runtime.concurrency import CancelToken
from .runtime.execution import ExecuteOptions, ToolCall, ToolRouter, ToolUse, execute, execute_many
from .runtime.observability import configure_logging, configure_observability, configure_tracing, get_logger
from .runtime.retry import RetryPolicy, with_retry
from .runtime.timeout import with_timeout

__version__ = "0.1.0"

__all__ = [
    # Results & errors
    "Result", "Ok", "Err", "ToolResult", "ToolError", "ToolErrorCode", "ToolException",
    "to_tool_error", "format_error_for_claude",
    # Config
    "McpServerConfig", "ToolrelaySettings", "get_settings",
    # Registry & MCP
    "ToolRegistry", "CallingTool", "ToolCandidate", "McpClient", "McpTool", "ToolDiscovery",
    "HealthTracker", "ServerHealth", "to_calling_tool", "parse_name",
    # Execution
    "execute", "execute_many", "ExecuteOptions", "ToolRouter", "ToolCall", "ToolUse",
    "CancelToken", "with_timeout", "with_retry", "RetryPolicy",
    # Observability
    "configure_logging", "configure_tracing", "configure_observability", "get_logger",
]
