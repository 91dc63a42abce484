"""Trace context propagation.

The active span is held in a ContextVar, so each asyncio task sees the span
that was active when it was created. Concurrent ``tool.execute`` spans fanned
out from one parent each nest under that parent without seeing each other.
"""

from __future__ import annotations

import secrets
from contextvars import ContextVar, Token
from dataclasses import dataclass


def _hex_id(nbytes: int) -> str:
    return secrets.token_hex(nbytes)


@dataclass(slots=True, frozen=True)
class SpanContext:
    """Identity of a span: W3C-sized trace id (32 hex) and span id (16 hex)."""

    trace_id: str
    span_id: str
    parent_id: str | None = None

    @classmethod
    def new(cls) -> SpanContext:
        """Root context with a fresh trace id."""
        return cls(trace_id=_hex_id(16), span_id=_hex_id(8))

    def child(self) -> SpanContext:
        return SpanContext(trace_id=self.trace_id, span_id=_hex_id(8), parent_id=self.span_id)


@dataclass(slots=True, frozen=True)
class TraceContext:
    """The span currently active in this task."""

    span_context: SpanContext

    @classmethod
    def get(cls) -> TraceContext | None:
        return _current.get()

    @classmethod
    def next_span(cls) -> SpanContext:
        """Child of the active span, or a new root when nothing is active."""
        ctx = _current.get()
        return ctx.span_context.child() if ctx else SpanContext.new()

    @classmethod
    def activate(cls, span_context: SpanContext) -> Token[TraceContext | None]:
        return _current.set(cls(span_context))

    @staticmethod
    def restore(token: Token[TraceContext | None]) -> None:
        _current.reset(token)


_current: ContextVar[TraceContext | None] = ContextVar("toolrelay_trace_context", default=None)
