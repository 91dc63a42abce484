"""MCP integration: wire types, schema conversion, client, discovery, health."""

from .client import McpClient
from .discovery import DiscoverySummary, ToolDiscovery
from .health import HealthTracker, ServerHealth
from .schema import NAME_SEPARATOR, ParsedName, exposed_name, parse_name, to_calling_tool
from .types import (
    CallPayload,
    ContentBlock,
    ErrorPayload,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    McpClientState,
    McpContent,
    McpTool,
    NormalPayload,
    decode_call_payload,
)

__all__ = [
    # Client
    "McpClient", "McpClientState",
    # Discovery / health
    "ToolDiscovery", "DiscoverySummary", "HealthTracker", "ServerHealth",
    # Schema
    "to_calling_tool", "parse_name", "exposed_name", "ParsedName", "NAME_SEPARATOR",
    # Wire types
    "McpTool", "McpContent", "ContentBlock", "JsonRpcRequest", "JsonRpcResponse", "JsonRpcError",
    "CallPayload", "NormalPayload", "ErrorPayload", "decode_call_payload",
]
