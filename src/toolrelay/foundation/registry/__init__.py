"""Tool registry: static and MCP-discovered tools with a discovery cache."""

from .registry import DISCOVERY_TTL_MS, ToolRegistry
from .types import CallingTool, DiscoveryCacheEntry, RegisteredTool, StaticTool, ToolCandidate, ToolHandler

__all__ = [
    "ToolRegistry", "DISCOVERY_TTL_MS",
    "CallingTool", "ToolCandidate", "RegisteredTool", "StaticTool", "DiscoveryCacheEntry", "ToolHandler",
]
