"""TTL-gated tool discovery across configured MCP servers.

Each pass drops the tools of disabled servers, then refreshes every enabled
server whose cache entry is stale, all concurrently. A failing server keeps
its previously registered tools; its error is reported but never blocks the
other servers' registrations.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Callable

import httpx

from toolrelay.foundation.config import McpServerConfig
from toolrelay.foundation.errors import Ok, ToolError, ToolErrorCode, ToolResult, is_retryable, tool_failure
from toolrelay.foundation.registry import ToolCandidate, ToolRegistry
from toolrelay.runtime.concurrency import gather_settled
from toolrelay.runtime.observability.logging import get_logger

from .client import McpClient
from .health import HealthTracker
from .schema import to_calling_tool

log = get_logger("toolrelay.mcp.discovery")

ClientFactory = Callable[[McpServerConfig], McpClient]

# Transport-class failures count against server health
_UNHEALTHY_CODES = frozenset({ToolErrorCode.TOOL_UNAVAILABLE, ToolErrorCode.MCP_CONNECTION_FAILED})


@dataclass(slots=True, frozen=True)
class DiscoverySummary:
    registered: int
    servers: dict[str, int] = field(default_factory=dict)


class ToolDiscovery:
    """Feeds ``tools/list`` results from each server into a registry.

    Args:
        registry: Destination for converted tools
        servers: Configured servers, enabled or not
        health: Optional tracker updated on transport failures/recoveries
        transport: httpx transport handed to each client (tests)
        client_factory: Overrides client construction entirely

    Example:
        >>> discovery = ToolDiscovery(registry, settings.servers())
        >>> result = await discovery.discover_all(trace_id="turn-42")
        >>> result.data.registered if result.success else result.error.message
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
        self._servers = list(servers)
        self._health = health
        self._client_factory = client_factory or (lambda cfg: McpClient(cfg, transport=transport))

    async def discover_all(self, trace_id: str | None = None) -> ToolResult[DiscoverySummary]:
        """Refresh stale servers. Err carries the first failure in server order."""
        enabled = [s for s in self._servers if s.enabled]
        log.info("tools.discovery.started", server_count=len(enabled), trace_id=trace_id)

        for s in self._servers:
            if not s.enabled and (removed := self._registry.remove_server_tools(s.name)):
                log.info("tools.registry.server.removed", server_name=s.name, removed_count=removed, trace_id=trace_id)

        stale = [s for s in enabled if self._registry.is_discovery_stale(s.name)]
        settled = await gather_settled(*(self._discover_server(s, trace_id) for s in stale))

        counts: dict[str, int] = {}
        first_error: ToolError | None = None
        for server, outcome in zip(stale, settled):
            if outcome.is_rejected:
                exc = outcome.error
                first_error = first_error or ToolError.create(
                    ToolErrorCode.TOOL_EXECUTION_FAILED, str(exc) or type(exc).__name__, retryable=is_retryable(exc)
                )
                continue
            result = outcome.unwrap()
            if result.success:
                counts[server.name] = result.unwrap()
            elif first_error is None:
                first_error = result.unwrap_err()

        if first_error is not None:
            return tool_failure(first_error.code, first_error.message, retryable=first_error.retryable)
        return Ok(DiscoverySummary(registered=sum(counts.values()), servers=counts))

    async def _discover_server(self, server: McpServerConfig, trace_id: str | None) -> ToolResult[int]:
        try:
            if not server.has_url:
                log.error("tools.discovery.server.failed", server_name=server.name,
                          error_message="Missing MCP server URL", trace_id=trace_id)
                return tool_failure(
                    ToolErrorCode.TOOL_INVALID_INPUT, f'Invalid MCP server config for "{server.name}": missing url'
                )

            listed = await self._client_factory(server).list_tools(trace_id)
            if not listed.success:
                error = listed.unwrap_err()
                log.warning("tools.discovery.server.failed", server_name=server.name,
                            error_message=error.message, trace_id=trace_id)
                if self._health is not None and error.code in _UNHEALTHY_CODES:
                    self._health.mark_server_unavailable(server.name, error.message)
                return listed

            candidates = [ToolCandidate(t.name, to_calling_tool(server.name, t)) for t in listed.unwrap()]
            registered = self._registry.register_mcp_tools(server.name, candidates)
            if self._health is not None:
                self._health.mark_server_available(server.name)
            log.info("tools.discovery.server.success", server_name=server.name, tool_count=registered, trace_id=trace_id)
            return Ok(registered)
        except Exception as e:
            log.exception("tools.discovery.server.failed", server_name=server.name, trace_id=trace_id)
            return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, str(e) or type(e).__name__, retryable=is_retryable(e))
