"""Tests for ToolRouter resolution and payload handling."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from toolrelay.ext.mcp import HealthTracker
from toolrelay.foundation.config import McpServerConfig
from toolrelay.foundation.errors import Ok, ToolErrorCode, ToolException
from toolrelay.foundation.registry import CallingTool, ToolRegistry
from toolrelay.foundation.testing import MockMcpServer, Reply
from toolrelay.runtime.execution import ToolCall, ToolRouter

TEXT_RESULT = {"content": [{"type": "text", "text": "hello"}]}


def _call(name: str, args: dict | None = None) -> ToolCall:
    return ToolCall(name, "toolu_01", args or {}, "trace-1")


@pytest.fixture
def health() -> HealthTracker:
    return HealthTracker()


@pytest.fixture
def router(
    registry: ToolRegistry, server_config: McpServerConfig, mcp_server: MockMcpServer, health: HealthTracker
) -> ToolRouter:
    return ToolRouter(registry, [server_config], health=health, transport=mcp_server.transport)


# ═════════════════════════════════════════════════════════════════════════════
# MCP Routing
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_mcp_success(router: ToolRouter, mcp_server: MockMcpServer) -> None:
    mcp_server.on_call(Reply.ok(TEXT_RESULT))

    result = await router(_call("rube__search", {"query": "hi"}))

    assert result == Ok(TEXT_RESULT)
    assert mcp_server.last_request("tools/call").params == {"name": "search", "arguments": {"query": "hi"}}


@pytest.mark.asyncio
async def test_remote_name_keeps_separator(router: ToolRouter, mcp_server: MockMcpServer) -> None:
    mcp_server.on_call(Reply.ok(TEXT_RESULT))
    await router.route(_call("rube__gmail__send"))
    assert mcp_server.last_request("tools/call").params["name"] == "gmail__send"


@pytest.mark.asyncio
async def test_error_payload_becomes_failure(router: ToolRouter, mcp_server: MockMcpServer) -> None:
    mcp_server.on_call(Reply.ok({"isError": True, "content": [{"type": "text", "text": "quota exceeded"}]}))

    err = (await router(_call("rube__search"))).unwrap_err()

    assert err.code == ToolErrorCode.TOOL_EXECUTION_FAILED
    assert err.message == "quota exceeded"
    assert not err.retryable


@pytest.mark.asyncio
async def test_non_object_result_becomes_text(router: ToolRouter, mcp_server: MockMcpServer) -> None:
    mcp_server.on_call(Reply.ok("plain"))
    assert (await router(_call("rube__search"))).unwrap() == {"content": [{"type": "text", "text": "plain"}]}


@pytest.mark.asyncio
async def test_malformed_result(router: ToolRouter, mcp_server: MockMcpServer) -> None:
    mcp_server.on_call(Reply.ok({"content": "not a list"}))
    err = (await router(_call("rube__search"))).unwrap_err()
    assert err.message.startswith("Invalid tools/call result:")


@pytest.mark.asyncio
async def test_transport_failure_marks_health(router: ToolRouter, mcp_server: MockMcpServer, health: HealthTracker) -> None:
    mcp_server.on_call(Reply.fail(httpx.ConnectError("connection refused")), Reply.ok(TEXT_RESULT))

    first = await router(_call("rube__search"))
    assert first.unwrap_err().code == ToolErrorCode.TOOL_UNAVAILABLE
    assert not health.is_server_available("rube")

    assert (await router(_call("rube__search"))).success
    assert health.is_server_available("rube")


@pytest.mark.asyncio
async def test_caller_abort_leaves_health_alone(router: ToolRouter, mcp_server: MockMcpServer, health: HealthTracker) -> None:
    mcp_server.on_call(Reply.hanging())
    call = _call("rube__search")
    asyncio.get_running_loop().call_later(0.02, call.signal.cancel, "user stop")

    err = (await router(call)).unwrap_err()

    assert err.message == "MCP request aborted: user stop"
    assert health.is_server_available("rube")
    assert health.get_all_server_health() == []


# ═════════════════════════════════════════════════════════════════════════════
# Not Found
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["nonexistent", "other__search"])
async def test_unknown_tool_never_touches_network(router: ToolRouter, mcp_server: MockMcpServer, name: str) -> None:
    err = (await router(_call(name))).unwrap_err()
    assert err.code == ToolErrorCode.TOOL_NOT_FOUND
    assert err.message == f'Tool "{name}" is not registered'
    assert mcp_server.call_count == 0


@pytest.mark.asyncio
async def test_disabled_server_is_not_called(registry: ToolRegistry, mcp_server: MockMcpServer) -> None:
    disabled = McpServerConfig(name="rube", url="https://mcp.test/rpc", enabled=False)
    router = ToolRouter(registry, [disabled], transport=mcp_server.transport)

    assert (await router(_call("rube__search"))).unwrap_err().code == ToolErrorCode.TOOL_NOT_FOUND
    assert mcp_server.call_count == 0


# ═════════════════════════════════════════════════════════════════════════════
# Static Tools
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_sync_static_handler(router: ToolRouter, registry: ToolRegistry) -> None:
    registry.register_static_tool("echo", lambda args: {"echo": args["text"]}, CallingTool(name="echo"))
    assert await router(_call("echo", {"text": "hi"})) == Ok({"echo": "hi"})


@pytest.mark.asyncio
async def test_async_static_handler(router: ToolRouter, registry: ToolRegistry) -> None:
    async def now(args: dict) -> str:
        await asyncio.sleep(0)
        return "12:00"

    registry.register_static_tool("now", now, CallingTool(name="now"))
    assert await router(_call("now")) == Ok("12:00")


@pytest.mark.asyncio
async def test_static_name_with_separator(router: ToolRouter, registry: ToolRegistry, mcp_server: MockMcpServer) -> None:
    registry.register_static_tool("my__tool", lambda args: "local", CallingTool(name="my__tool"))
    assert await router(_call("my__tool")) == Ok("local")
    assert mcp_server.call_count == 0


@pytest.mark.asyncio
async def test_raising_handler_is_classified(router: ToolRouter, registry: ToolRegistry) -> None:
    def bad(args: dict) -> None:
        raise ValueError("HTTP 400: missing query")

    async def limited(args: dict) -> None:
        raise ToolException.create(ToolErrorCode.RATE_LIMITED, "slow down", retryable=True)

    registry.register_static_tool("bad", bad, CallingTool(name="bad"))
    registry.register_static_tool("limited", limited, CallingTool(name="limited"))

    assert (await router(_call("bad"))).unwrap_err().code == ToolErrorCode.TOOL_INVALID_INPUT
    err = (await router(_call("limited"))).unwrap_err()
    assert (err.code, err.message, err.retryable) == (ToolErrorCode.RATE_LIMITED, "slow down", True)
