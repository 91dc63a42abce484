"""Registry entry types."""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Annotated, Any, Callable

from pydantic import BaseModel, ConfigDict, Field

JsonDict = dict[str, Any]

# Sync or async; sync handlers run in a worker thread
ToolHandler = Callable[[JsonDict], Awaitable[Any] | Any]


class CallingTool(BaseModel):
    """Tool definition in the calling model's native format."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [{
                "name": "rube__search",
                "description": "Search the web",
                "input_schema": {"type": "object", "properties": {"query": {"type": "string"}}, "required": ["query"]},
            }],
        },
    )

    name: Annotated[str, Field(min_length=1)]
    description: str | None = None
    input_schema: JsonDict = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_dict(self) -> JsonDict:
        return self.model_dump(exclude_none=True)


@dataclass(slots=True, frozen=True)
class ToolCandidate:
    """A converted MCP tool offered to ``register_mcp_tools``."""

    original_name: str
    calling_tool: CallingTool


@dataclass(slots=True, frozen=True)
class RegisteredTool:
    """An MCP-sourced tool, owned by the server that discovered it."""

    calling_tool: CallingTool
    server_name: str
    original_name: str


@dataclass(slots=True, frozen=True)
class StaticTool:
    calling_tool: CallingTool
    handler: ToolHandler


@dataclass(slots=True, frozen=True)
class DiscoveryCacheEntry:
    last_discovery_ms: float
    tool_count: int
