"""MCP tool schema -> calling-model tool schema, and back for names.

Exposed MCP names are ``{server}__{tool}``. Parsing splits on the first
``__`` so a remote tool name that itself contains ``__`` survives intact.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, NamedTuple

from toolrelay.foundation.registry import CallingTool

from .types import JsonDict, McpTool

NAME_SEPARATOR = "__"

# Scalar keywords copied verbatim; nullable has no native equivalent and is passed through
_COPIED_KEYS = ("type", "description", "enum", "default", "nullable")
_COMBINATORS = ("oneOf", "anyOf", "allOf")


class ParsedName(NamedTuple):
    server_name: str
    tool_name: str


def exposed_name(server_name: str, tool_name: str) -> str:
    return f"{server_name}{NAME_SEPARATOR}{tool_name}"


def parse_name(name: str) -> ParsedName | None:
    """Split an exposed MCP name; None when it is not server-prefixed.

    >>> parse_name("rube__gmail__send")
    ParsedName(server_name='rube', tool_name='gmail__send')
    >>> parse_name("search") is None
    True
    """
    server, sep, tool = name.partition(NAME_SEPARATOR)
    if not sep or not server or not tool:
        return None
    return ParsedName(server, tool)


def to_calling_tool(server_name: str, tool: McpTool) -> CallingTool:
    """Convert one remote descriptor. Pure and total."""
    schema = tool.input_schema
    properties = schema.get("properties")
    input_schema: JsonDict = {
        "type": "object",
        "properties": _convert_properties(properties) if isinstance(properties, Mapping) else {},
    }
    required = schema.get("required")
    if isinstance(required, list) and required:
        input_schema["required"] = list(required)

    return CallingTool(
        name=exposed_name(server_name, tool.name),
        description=tool.description or None,
        input_schema=input_schema,
    )


def _convert_properties(properties: Mapping[str, Any]) -> JsonDict:
    return {key: _convert_property(prop) for key, prop in properties.items()}


def _convert_property(prop: Any) -> JsonDict:
    if not isinstance(prop, Mapping):
        return {}
    out: JsonDict = {k: prop[k] for k in _COPIED_KEYS if k in prop}

    if isinstance(nested := prop.get("properties"), Mapping):
        out["properties"] = _convert_properties(nested)
    if "required" in prop:
        out["required"] = prop["required"]
    if "items" in prop:
        out["items"] = _convert_property(prop["items"])
    for key in _COMBINATORS:
        if isinstance(members := prop.get(key), list):
            out[key] = [_convert_property(m) for m in members]
    return out
