"""Resolve an exposed tool name to an MCP server call or a static handler."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from toolrelay.ext.mcp import ErrorPayload, HealthTracker, McpClient, decode_call_payload, parse_name
from toolrelay.ext.mcp.discovery import ClientFactory
from toolrelay.foundation.config import McpServerConfig
from toolrelay.foundation.errors import (
    Err,
    Ok,
    ToolErrorCode,
    ToolResult,
    to_tool_error,
    tool_failure,
)
from toolrelay.foundation.registry import StaticTool, ToolRegistry
from toolrelay.runtime.observability.logging import get_logger

from .types import ToolCall

log = get_logger("toolrelay.router")

_UNHEALTHY_CODES = frozenset({ToolErrorCode.TOOL_UNAVAILABLE, ToolErrorCode.MCP_CONNECTION_FAILED})


class ToolRouter:
    """Routes ToolCalls. Instances are route functions: ``await router(call)``.

    Resolution order:
        1. ``server__tool`` whose server is configured, enabled, and has a URL -> MCP
        2. static tool registered under the exact name -> handler
        3. otherwise TOOL_NOT_FOUND, without touching the network

    Example:
        >>> router = ToolRouter(registry, settings.servers(), health=health)
        >>> result = await execute("rube__search", "tu_1", {"query": "hi"}, router, ExecuteOptions(trace_id="t"))
    """

    __slots__ = ("_registry", "_servers", "_health", "_client_factory")

    def __init__(
        self,
        registry: ToolRegistry,
        servers: Sequence[McpServerConfig],
        *,
        health: HealthTracker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._registry = registry
        self._servers = {s.name: s for s in servers}
        self._health = health
        self._client_factory = client_factory or (lambda cfg: McpClient(cfg, transport=transport))

    async def route(self, call: ToolCall) -> ToolResult[Any]:
        try:
            if (parsed := parse_name(call.tool_name)) is not None:
                server = self._servers.get(parsed.server_name)
                if server is not None and server.enabled and server.has_url:
                    return await self._call_mcp(server, parsed.tool_name, call)

            if (static := self._registry.get_static_tool(call.tool_name)) is not None:
                return await self._call_static(static, call)

            log.info("tool.route.not_found", tool=call.tool_name, trace_id=call.trace_id)
            return tool_failure(ToolErrorCode.TOOL_NOT_FOUND, f'Tool "{call.tool_name}" is not registered')
        except Exception as e:
            return Err(to_tool_error(e))

    __call__ = route

    async def _call_mcp(self, server: McpServerConfig, tool_name: str, call: ToolCall) -> ToolResult[Any]:
        client = self._client_factory(server)
        result = await client.call_tool(tool_name, call.args, signal=call.signal, trace_id=call.trace_id)

        if not result.success:
            error = result.unwrap_err()
            # A caller abort says nothing about the server
            if self._health is not None and error.code in _UNHEALTHY_CODES and not call.signal.cancelled:
                self._health.mark_server_unavailable(server.name, error.message)
            return result

        if self._health is not None:
            self._health.mark_server_available(server.name)

        try:
            payload = decode_call_payload(result.unwrap())
        except ValidationError as e:
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, f"Invalid tools/call result: {e.error_count()} validation errors")
        if isinstance(payload, ErrorPayload):
            return Err(to_tool_error(payload))
        return Ok(payload.to_dict())

    async def _call_static(self, static: StaticTool, call: ToolCall) -> ToolResult[Any]:
        handler = static.handler
        try:
            if inspect.iscoroutinefunction(handler):
                data = await call.signal.run(handler(call.args))
            else:
                data = await call.signal.run(asyncio.to_thread(handler, call.args))
                if inspect.isawaitable(data):
                    data = await call.signal.run(data)
        except Exception as e:
            return Err(to_tool_error(e))
        return Ok(data)
