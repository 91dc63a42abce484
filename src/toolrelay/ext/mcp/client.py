"""JSON-RPC 2.0 over HTTP client for one MCP server.

Stateless per request: every call opens a short-lived ``httpx.AsyncClient``.
A request is bounded by the server's ``request_timeout_ms`` and can also be
aborted by a caller-supplied CancelToken; both feed one linked token that
cancels the in-flight HTTP exchange.

Public methods never raise; every outcome is a ToolResult:

    >>> client = McpClient(McpServerConfig(name="rube", url="https://rube.app/mcp", enabled=True))
    >>> tools = await client.list_tools(trace_id="t-1")
    >>> result = await client.call_tool("search", {"query": "hi"}, signal=token)
"""

from __future__ import annotations

import asyncio
import itertools
import time
from datetime import UTC, datetime
from typing import Any

import httpx
import orjson
from pydantic import ValidationError

from toolrelay.foundation.config import McpServerConfig
from toolrelay.foundation.errors import (
    Ok,
    OperationAborted,
    ToolErrorCode,
    ToolResult,
    is_retryable,
    tool_failure,
)
from toolrelay.runtime.concurrency import CancelToken
from toolrelay.runtime.observability.logging import get_logger
from toolrelay.runtime.observability.tracing import SpanKind, SpanStatus, Tracer

from .types import JsonDict, JsonRpcRequest, JsonRpcResponse, McpClientState, McpContent, McpTool, McpToolList

log = get_logger("toolrelay.mcp.client")

_NETWORK_MARKERS = ("econnrefused", "econnreset", "network", "dns")


class McpClient:
    """Client for a single remote tool server.

    Args:
        config: Server connection parameters
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
    """

    __slots__ = ("_config", "_transport", "_ids", "_state")

    def __init__(self, config: McpServerConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport
        self._ids = itertools.count(1)
        self._state = McpClientState()

    def __repr__(self) -> str:
        return f"McpClient({self._config.name!r}, url={self._config.url!r})"

    @property
    def server_name(self) -> str:
        return self._config.name

    @property
    def state(self) -> McpClientState:
        """Last success/failure. The model is frozen and replaced on every update, so callers may hold it."""
        return self._state

    # ─────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────

    async def list_tools(self, trace_id: str | None = None) -> ToolResult[list[McpTool]]:
        """``tools/list``: the server's tool descriptors."""
        start = time.perf_counter()
        log.info("mcp.tools.list.started", server_name=self.server_name, trace_id=trace_id)

        with Tracer.current().span("mcp.tools.list", SpanKind.EXTERNAL, {"server": self.server_name}) as span:
            try:
                response = await self._send("tools/list", {}, trace_id)
                result = response.flat_map(self._parse_tools)
            except Exception as e:
                log.exception("mcp.tools.list.failed", server_name=self.server_name, trace_id=trace_id)
                result = tool_failure(ToolErrorCode.TOOL_UNAVAILABLE, str(e) or type(e).__name__, retryable=is_retryable(e))

            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            span.set_attributes({"success": result.success, "duration_ms": duration_ms})
            if not result.success:
                error = result.unwrap_err()
                self._record_error(error.message)
                span.set_attribute("error_code", error.code.value).set_status(SpanStatus.ERROR, error.message)
                return result

            tools = result.unwrap()
            self._record_success(duration_ms)
            span.set_attribute("tool_count", len(tools))
            log.info("mcp.tools.list.success", server_name=self.server_name, tool_count=len(tools),
                     duration_ms=duration_ms, trace_id=trace_id)
            return result

    async def call_tool(
        self,
        name: str,
        arguments: JsonDict,
        signal: CancelToken | None = None,
        trace_id: str | None = None,
    ) -> ToolResult[McpContent]:
        """``tools/call``: the raw result object (``{content: [...], isError?}``).

        A result with ``isError: true`` is still returned as Ok here; semantic
        failure is decided by the router.
        """
        start = time.perf_counter()
        log.info("mcp.call.started", server_name=self.server_name, tool_name=name, trace_id=trace_id)
        attrs = {"server": self.server_name, "tool": name, "arg_keys": sorted(arguments)}

        with Tracer.current().span("mcp.call", SpanKind.EXTERNAL, attrs) as span:
            try:
                result = await self._send("tools/call", {"name": name, "arguments": arguments}, trace_id, signal)
            except Exception as e:
                log.exception("mcp.call.failed", server_name=self.server_name, tool_name=name, trace_id=trace_id)
                result = tool_failure(ToolErrorCode.TOOL_UNAVAILABLE, str(e) or type(e).__name__, retryable=is_retryable(e))

            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            span.set_attributes({"success": result.success, "duration_ms": duration_ms})
            if not result.success:
                error = result.unwrap_err()
                self._record_error(error.message)
                span.set_attribute("error_code", error.code.value).set_status(SpanStatus.ERROR, error.message)
                return result

            self._record_success(duration_ms)
            content = result.unwrap()
            blocks = content.get("content") if isinstance(content, dict) else None
            block_count = len(blocks) if isinstance(blocks, list) else 0
            span.set_attribute("content_blocks", block_count)
            log.info("mcp.call.success", server_name=self.server_name, tool_name=name,
                     content_blocks=block_count, duration_ms=duration_ms, trace_id=trace_id)
            return result

    # ─────────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token := self._config.token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _post(self, request: JsonRpcRequest) -> httpx.Response:
        timeout = httpx.Timeout(
            self._config.request_timeout_ms / 1000,
            connect=self._config.connection_timeout_ms / 1000,
        )
        async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
            return await client.post(self._config.url, content=orjson.dumps(request.model_dump()), headers=self._headers())

    async def _send(
        self,
        method: str,
        params: JsonDict,
        trace_id: str | None,
        signal: CancelToken | None = None,
    ) -> ToolResult[Any]:
        """One JSON-RPC exchange, classified in fixed precedence order."""
        request = JsonRpcRequest(id=next(self._ids), method=method, params=params)
        timeout_ms = self._config.request_timeout_ms
        timer = CancelToken()
        handle = asyncio.get_running_loop().call_later(timeout_ms / 1000, timer.cancel, "request timeout")

        try:
            with CancelToken.linked(timer, signal) as abort:
                response = await abort.run(self._post(request))
        except (OperationAborted, httpx.TimeoutException):
            if signal is not None and signal.cancelled and not timer.cancelled:
                return tool_failure(ToolErrorCode.TOOL_UNAVAILABLE, f"MCP request aborted: {signal.reason}", retryable=True)
            log.warning("mcp.request.timeout", server_name=self.server_name, method=method,
                        timeout_ms=timeout_ms, trace_id=trace_id)
            return tool_failure(ToolErrorCode.TOOL_UNAVAILABLE, f"MCP request timeout after {timeout_ms}ms", retryable=True)
        except Exception as e:
            message = str(e) or type(e).__name__
            if isinstance(e, (httpx.NetworkError, ConnectionError)) or any(m in message.lower() for m in _NETWORK_MARKERS):
                return tool_failure(ToolErrorCode.TOOL_UNAVAILABLE, message, retryable=True)
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, message, retryable=is_retryable(e))
        finally:
            handle.cancel()

        if not response.is_success:
            status = response.status_code
            return tool_failure(
                ToolErrorCode.TOOL_EXECUTION_FAILED,
                f"HTTP {status}: {response.reason_phrase}",
                retryable=status >= 500 or status == 429,
            )

        try:
            body = JsonRpcResponse.parse(orjson.loads(response.content))
        except ValueError:
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "Invalid JSON response from MCP server")

        if body.error is not None:
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, f"{body.error.message} (code: {body.error.code})")
        if not body.has_result:
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "MCP response missing result field")
        return Ok(body.result)

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _parse_tools(result: Any) -> ToolResult[list[McpTool]]:
        if not isinstance(result, dict):
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "Invalid tools/list result: result must be an object")
        raw = result.get("tools")
        if raw is None:
            raw = []
        if not isinstance(raw, list):
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "Invalid tools/list result: tools must be a list")
        try:
            return Ok(McpToolList.validate_python(raw))
        except ValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(p) for p in first["loc"])
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, f"Invalid tools/list result: {where}: {first['msg']}")

    def _record_success(self, latency_ms: float) -> None:
        self._state = self._state.model_copy(update={"last_success_at": datetime.now(UTC), "last_latency_ms": latency_ms})

    def _record_error(self, message: str) -> None:
        self._state = self._state.model_copy(update={"last_error": message, "last_error_at": datetime.now(UTC)})
