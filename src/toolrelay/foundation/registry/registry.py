"""Catalogue of static and MCP-discovered tools.

Static tools are exposed under their bare name and always win naming
conflicts. MCP tools are exposed as ``{server}__{tool}`` and are replaced
wholesale, per server, on every successful discovery.

Mutations hold a lock for their whole duration, so a reader sees either the
complete old or the complete new tool set for a server, never a mix.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from typing import Callable

from toolrelay.runtime.observability.logging import get_logger

from .types import CallingTool, DiscoveryCacheEntry, RegisteredTool, StaticTool, ToolCandidate, ToolHandler

log = get_logger("toolrelay.registry")

DISCOVERY_TTL_MS = 5 * 60 * 1000


class ToolRegistry:
    """In-memory tool catalogue with a per-server discovery cache.

    Construct one per application and pass it to the router and discovery;
    tests build their own isolated instances.

    Args:
        ttl_ms: Discovery freshness window
        clock: Seconds since the epoch; injectable for tests

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register_static_tool("echo", echo_handler, CallingTool(name="echo"))
        >>> registry.register_mcp_tools("rube", [ToolCandidate("search", to_calling_tool("rube", tool))])
        1
        >>> [t.name for t in registry.get_tools_for_claude()]
        ['echo', 'rube__search']
    """

    __slots__ = ("_static", "_mcp", "_cache", "_lock", "_ttl_ms", "_clock")

    def __init__(self, *, ttl_ms: int = DISCOVERY_TTL_MS, clock: Callable[[], float] = time.time) -> None:
        self._static: dict[str, StaticTool] = {}
        self._mcp: dict[str, RegisteredTool] = {}
        self._cache: dict[str, DiscoveryCacheEntry] = {}
        self._lock = threading.RLock()
        self._ttl_ms = ttl_ms
        self._clock = clock

    def __repr__(self) -> str:
        return f"ToolRegistry(static={len(self._static)}, mcp={len(self._mcp)})"

    def _now_ms(self) -> float:
        return self._clock() * 1000

    # ─────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────

    def register_static_tool(self, name: str, handler: ToolHandler, schema: CallingTool) -> None:
        """Insert or overwrite a built-in tool."""
        with self._lock:
            self._static[name] = StaticTool(calling_tool=schema, handler=handler)
            static_count, mcp_count = len(self._static), len(self._mcp)
        log.info("tools.registry.updated", static_count=static_count, mcp_count=mcp_count)

    def register_mcp_tools(self, server_name: str, candidates: Iterable[ToolCandidate]) -> int:
        """Replace every tool owned by ``server_name`` with ``candidates``.

        Candidates whose original name matches a static tool are skipped.
        Stamps the discovery cache and returns the number registered.
        """
        conflicts: list[str] = []
        with self._lock:
            removed = self._remove_locked(server_name)
            registered = 0
            for c in candidates:
                if c.original_name in self._static:
                    conflicts.append(c.original_name)
                    continue
                self._mcp[c.calling_tool.name] = RegisteredTool(
                    calling_tool=c.calling_tool, server_name=server_name, original_name=c.original_name
                )
                registered += 1
            self._cache[server_name] = DiscoveryCacheEntry(last_discovery_ms=self._now_ms(), tool_count=registered)
            static_count, mcp_count = len(self._static), len(self._mcp)

        for name in conflicts:
            log.warning("tools.registry.mcp_tool_conflict", server_name=server_name, tool_name=name)
        if removed:
            log.info("tools.registry.server.removed", server_name=server_name, removed_count=removed)
        log.info("tools.registry.updated", static_count=static_count, mcp_count=mcp_count)
        return registered

    def remove_server_tools(self, server_name: str) -> int:
        """Delete every tool owned by ``server_name``; returns how many."""
        with self._lock:
            return self._remove_locked(server_name)

    def _remove_locked(self, server_name: str) -> int:
        doomed = [name for name, t in self._mcp.items() if t.server_name == server_name]
        for name in doomed:
            del self._mcp[name]
        return len(doomed)

    # ─────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────

    def get_tools_for_claude(self) -> list[CallingTool]:
        """All tool schemas, sorted by exposed name so repeated calls are byte-identical."""
        with self._lock:
            tools = [t.calling_tool for t in self._static.values()] + [t.calling_tool for t in self._mcp.values()]
        return sorted(tools, key=lambda t: t.name)

    def get_static_tool(self, name: str) -> StaticTool | None:
        with self._lock:
            return self._static.get(name)

    def get_mcp_tool(self, exposed_name: str) -> RegisteredTool | None:
        with self._lock:
            return self._mcp.get(exposed_name)

    def server_tools(self, server_name: str) -> list[RegisteredTool]:
        with self._lock:
            return [t for t in self._mcp.values() if t.server_name == server_name]

    # ─────────────────────────────────────────────────────────────────
    # Discovery Cache
    # ─────────────────────────────────────────────────────────────────

    def is_discovery_stale(self, server_name: str) -> bool:
        with self._lock:
            entry = self._cache.get(server_name)
        return entry is None or self._now_ms() - entry.last_discovery_ms > self._ttl_ms

    def discovery_entry(self, server_name: str) -> DiscoveryCacheEntry | None:
        with self._lock:
            return self._cache.get(server_name)

    def set_discovery_timestamp(self, server_name: str, last_discovery_ms: float) -> None:
        """Back-date (or forward-date) a server's cache entry, keeping its tool count."""
        with self._lock:
            existing = self._cache.get(server_name)
            count = existing.tool_count if existing else sum(1 for t in self._mcp.values() if t.server_name == server_name)
            self._cache[server_name] = DiscoveryCacheEntry(last_discovery_ms=last_discovery_ms, tool_count=count)

    def reset(self) -> None:
        """Drop all tools and cache entries."""
        with self._lock:
            self._static.clear()
            self._mcp.clear()
            self._cache.clear()
