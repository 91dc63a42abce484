"""Tests for ToolRegistry: conflicts, replacement, ordering, discovery cache."""

from __future__ import annotations

from toolrelay.foundation.registry import CallingTool, ToolCandidate, ToolRegistry
from toolrelay.runtime.observability import MemoryRenderer



def _noop(args: dict) -> str:
    return "ok"


def _candidate(server: str, name: str) -> ToolCandidate:
    return ToolCandidate(name, CallingTool(name=f"{server}__{name}", description=f"{name} tool"))


def test_tools_are_sorted_and_stable(registry: ToolRegistry) -> None:
    registry.register_static_tool("zeta", _noop, CallingTool(name="zeta"))
    registry.register_static_tool("alpha", _noop, CallingTool(name="alpha"))
    registry.register_mcp_tools("rube", [_candidate("rube", "search"), _candidate("rube", "fetch")])

    names = [t.name for t in registry.get_tools_for_claude()]
    assert names == ["alpha", "rube__fetch", "rube__search", "zeta"]
    assert registry.get_tools_for_claude() == registry.get_tools_for_claude()


def test_static_tool_wins_conflict(registry: ToolRegistry, logs: MemoryRenderer) -> None:
    registry.register_static_tool("search", _noop, CallingTool(name="search"))
    count = registry.register_mcp_tools("rube", [_candidate("rube", "search"), _candidate("rube", "fetch")])

    assert count == 1
    assert registry.get_mcp_tool("rube__search") is None
    assert registry.get_mcp_tool("rube__fetch") is not None
    [conflict] = logs.events("tools.registry.mcp_tool_conflict")
    assert conflict.context["tool_name"] == "search"
    assert conflict.context["server_name"] == "rube"


def test_registration_replaces_server_tools(registry: ToolRegistry, logs: MemoryRenderer) -> None:
    registry.register_mcp_tools("rube", [_candidate("rube", "a"), _candidate("rube", "b")])
    registry.register_mcp_tools("other", [_candidate("other", "x")])
    registry.register_mcp_tools("rube", [_candidate("rube", "c")])

    assert [t.original_name for t in registry.server_tools("rube")] == ["c"]
    assert [t.original_name for t in registry.server_tools("other")] == ["x"]
    assert registry.get_mcp_tool("rube__a") is None
    assert logs.events("tools.registry.server.removed")[-1].context["removed_count"] == 2


def test_registered_tool_keeps_ownership(registry: ToolRegistry) -> None:
    registry.register_mcp_tools("rube", [_candidate("rube", "search")])
    tool = registry.get_mcp_tool("rube__search")
    assert tool is not None
    assert (tool.server_name, tool.original_name) == ("rube", "search")


def test_remove_server_tools(registry: ToolRegistry) -> None:
    registry.register_mcp_tools("rube", [_candidate("rube", "a"), _candidate("rube", "b")])
    assert registry.remove_server_tools("rube") == 2
    assert registry.remove_server_tools("rube") == 0
    assert registry.get_tools_for_claude() == []


def test_static_lookup(registry: ToolRegistry) -> None:
    registry.register_static_tool("echo", _noop, CallingTool(name="echo"))
    static = registry.get_static_tool("echo")
    assert static is not None and static.handler is _noop
    assert registry.get_static_tool("missing") is None


# ─────────────────────────────────────────────────────────────────────────────
# Discovery Cache
# ─────────────────────────────────────────────────────────────────────────────


def test_unknown_server_is_stale(registry: ToolRegistry) -> None:
    assert registry.is_discovery_stale("rube")
    assert registry.discovery_entry("rube") is None


def test_ttl_window(registry: ToolRegistry, clock) -> None:
    registry.register_mcp_tools("rube", [_candidate("rube", "a")])
    assert not registry.is_discovery_stale("rube")

    clock.advance(300)
    assert not registry.is_discovery_stale("rube")
    clock.advance(0.5)
    assert registry.is_discovery_stale("rube")


def test_empty_registration_still_stamps_cache(registry: ToolRegistry) -> None:
    assert registry.register_mcp_tools("rube", []) == 0
    entry = registry.discovery_entry("rube")
    assert entry is not None and entry.tool_count == 0
    assert not registry.is_discovery_stale("rube")


def test_set_discovery_timestamp(registry: ToolRegistry, clock) -> None:
    registry.register_mcp_tools("rube", [_candidate("rube", "a"), _candidate("rube", "b")])
    registry.set_discovery_timestamp("rube", clock() * 1000 - 300_001)

    assert registry.is_discovery_stale("rube")
    entry = registry.discovery_entry("rube")
    assert entry is not None and entry.tool_count == 2


def test_custom_ttl(clock) -> None:
    registry = ToolRegistry(ttl_ms=1000, clock=clock)
    registry.register_mcp_tools("rube", [])
    clock.advance(2)
    assert registry.is_discovery_stale("rube")


def test_reset(registry: ToolRegistry) -> None:
    registry.register_static_tool("echo", _noop, CallingTool(name="echo"))
    registry.register_mcp_tools("rube", [_candidate("rube", "a")])
    registry.reset()
    assert registry.get_tools_for_claude() == []
    assert registry.is_discovery_stale("rube")
