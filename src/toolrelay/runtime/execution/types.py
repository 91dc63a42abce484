"""Call descriptors passed between the executor and a route function."""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Callable

from toolrelay.foundation.errors import ToolResult
from toolrelay.runtime.concurrency import CancelToken

JsonDict = dict[str, Any]


@dataclass(slots=True, frozen=True)
class ToolCall:
    """One routing attempt. ``signal`` fires on timeout or caller abort."""

    tool_name: str
    tool_use_id: str
    args: JsonDict
    trace_id: str
    signal: CancelToken = field(default_factory=CancelToken)


@dataclass(slots=True, frozen=True)
class ToolUse:
    """A tool-use request from the model, as handed to ``execute_many``."""

    tool_name: str
    tool_use_id: str
    args: JsonDict = field(default_factory=dict)


RouteFn = Callable[[ToolCall], Awaitable[ToolResult[Any]]]
