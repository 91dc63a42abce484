"""Span types for tracing tool execution.

Spans represent units of work with timing, attributes, and events.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .context import SpanContext

JsonDict = dict[str, Any]


class SpanKind(StrEnum):
    """Span type classification."""

    TOOL = "tool"          # Tool invocation
    INTERNAL = "internal"  # Internal operation
    EXTERNAL = "external"  # Outbound MCP request


class SpanStatus(StrEnum):
    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(slots=True)
class SpanEvent:
    """Point-in-time event within a span (e.g. "retry")."""

    name: str
    timestamp: float = field(default_factory=time.time)
    attributes: JsonDict = field(default_factory=dict)


@dataclass(slots=True)
class Span:
    """A unit of work in a trace.

    Attributes:
        name: Span name (e.g. "tool.execute", "mcp.call")
        context: SpanContext with trace/span/parent ids
        kind: Type of work
        start_time: Unix timestamp of span start
        end_time: Unix timestamp of span end (None while active)
        attributes: Key-value metadata
        events: Timestamped events during execution
        status: Completion status
        error: Error message if failed

    Example:
        >>> span = Span(name="tool.execute", context=SpanContext.new(), kind=SpanKind.TOOL)
        >>> span.set_attribute("tool", "rube__search")
        >>> span.add_event("retry", {"attempt": 1})
        >>> span.end(status=SpanStatus.OK)
    """

    name: str
    context: SpanContext
    kind: SpanKind = SpanKind.INTERNAL
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None
    attributes: JsonDict = field(default_factory=dict)
    events: list[SpanEvent] = field(default_factory=list)
    status: SpanStatus = SpanStatus.UNSET
    error: str | None = None

    @property
    def duration_ms(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    def set_attribute(self, key: str, value: Any) -> Span:
        self.attributes[key] = value
        return self

    def set_attributes(self, attrs: JsonDict) -> Span:
        self.attributes.update(attrs)
        return self

    def add_event(self, name: str, attributes: JsonDict | None = None) -> Span:
        self.events.append(SpanEvent(name=name, attributes=attributes or {}))
        return self

    def set_status(self, status: SpanStatus, error: str | None = None) -> Span:
        self.status = status
        if error:
            self.error = error
        return self

    def end(self, status: SpanStatus | None = None, error: str | None = None) -> Span:
        """End the span; an error string forces ERROR status."""
        self.end_time = time.time()
        if status:
            self.status = status
        if error:
            self.error = error
            self.status = SpanStatus.ERROR
        return self

    def to_dict(self) -> JsonDict:
        """Serialize span for export."""
        return {
            "name": self.name,
            "trace_id": self.context.trace_id,
            "span_id": self.context.span_id,
            "parent_id": self.context.parent_id,
            "kind": self.kind.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "error": self.error,
            "attributes": self.attributes,
            "events": [{"name": e.name, "timestamp": e.timestamp, "attributes": e.attributes} for e in self.events],
        }
