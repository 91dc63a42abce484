"""Test helpers: a scriptable fake MCP server."""

from .mock import MockMcpServer, RecordedRequest, Reply

__all__ = ["MockMcpServer", "RecordedRequest", "Reply"]
