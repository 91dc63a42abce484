"""Span exporters.

- ConsoleExporter: one line per span for development
- JsonExporter: JSON lines via orjson for log aggregation
- MemoryExporter: keeps spans for assertions
- OTLPBridge: OpenTelemetry Protocol export (``pip install toolrelay[otel]``)
- NoOpExporter: discard
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

import orjson

if TYPE_CHECKING:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import ReadableSpan

    from .span import JsonDict, Span

_COLORS = {"reset": "\033[0m", "bold": "\033[1m", "dim": "\033[2m",
           "red": "\033[31m", "green": "\033[32m", "yellow": "\033[33m", "cyan": "\033[36m"}
_NO_COLORS = {k: "" for k in _COLORS}


@runtime_checkable
class Exporter(Protocol):
    """Receives completed spans. Must tolerate concurrent calls."""

    def export(self, spans: list[Span]) -> None: ...

    def shutdown(self) -> None: ...


@dataclass(slots=True)
class NoOpExporter:
    def export(self, spans: list[Span]) -> None:
        pass

    def shutdown(self) -> None:
        pass


@dataclass(slots=True)
class MemoryExporter:
    """Collects finished spans in order of completion."""

    spans: list[Span] = field(default_factory=list)

    def export(self, spans: list[Span]) -> None:
        self.spans.extend(spans)

    def named(self, name: str) -> list[Span]:
        return [s for s in self.spans if s.name == name]

    def clear(self) -> None:
        self.spans.clear()

    def shutdown(self) -> None:
        pass


@dataclass(slots=True)
class ConsoleExporter:
    """Pretty-print spans. Colors only when the output is a TTY."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool = True
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.colors and not getattr(self.output, "isatty", lambda: False)():
            self.colors = False

    def export(self, spans: list[Span]) -> None:
        for s in spans:
            self._print_span(s)

    def _print_span(self, span: Span) -> None:
        c = _COLORS if self.colors else _NO_COLORS
        sym = {"ok": "✓", "error": "✗"}.get(span.status.value, "○")
        color = {"ok": c["green"], "error": c["red"]}.get(span.status.value, c["dim"])
        ts = datetime.fromtimestamp(span.start_time, tz=UTC).strftime("%H:%M:%S.%f")[:-3]
        dur = f"{span.duration_ms:.1f}ms" if span.duration_ms is not None else "..."
        indent = "  " if span.context.parent_id else ""

        line = (f"{c['dim']}{ts}{c['reset']} {color}{sym}{c['reset']} "
                f"{indent}{c['bold']}{span.name}{c['reset']} "
                f"{c['cyan']}[{span.kind.value}]{c['reset']} {c['yellow']}{dur}{c['reset']}")
        if span.error:
            line += f" {c['red']}error={span.error[:50]}{c['reset']}"
        print(line, file=self.output)

        if self.verbose:
            for k, v in span.attributes.items():
                print(f"    {c['dim']}{k}={v!r}{c['reset']}", file=self.output)

    def shutdown(self) -> None:
        self.output.flush()


@dataclass(slots=True)
class JsonExporter:
    """One JSON object per span per line."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def export(self, spans: list[Span]) -> None:
        for s in spans:
            print(orjson.dumps(s.to_dict(), default=str).decode(), file=self.output)

    def shutdown(self) -> None:
        self.output.flush()


# ─────────────────────────────────────────────────────────────────────────────
# OTLP Exporter (optional: opentelemetry-* packages)
# ─────────────────────────────────────────────────────────────────────────────


def create_otlp_exporter(
    endpoint: str = "http://localhost:4317",
    service_name: str = "toolrelay",
    insecure: bool = True,
    headers: dict[str, str] | None = None,
) -> Exporter:
    """OTLP/gRPC exporter. Requires: pip install toolrelay[otel]"""
    try:
        import opentelemetry.exporter.otlp.proto.grpc.trace_exporter  # noqa: F401
    except ImportError as e:
        raise ImportError("OTLP exporter requires: pip install toolrelay[otel]") from e
    return OTLPBridge(endpoint=endpoint, service_name=service_name, insecure=insecure, headers=headers)


@dataclass
class OTLPBridge:
    """Converts toolrelay spans into OTel ReadableSpans and ships them over OTLP."""

    endpoint: str
    service_name: str
    insecure: bool = True
    headers: dict[str, str] | None = None
    _exporter: OTLPSpanExporter | None = field(default=None, init=False, repr=False)
    _resource: Resource | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource

        self._resource = Resource.create({SERVICE_NAME: self.service_name})
        self._exporter = OTLPSpanExporter(endpoint=self.endpoint, insecure=self.insecure, headers=self.headers or {})

    def export(self, spans: list[Span]) -> None:
        if self._exporter is None:
            return
        self._exporter.export([self._to_otel_span(s) for s in spans])

    def _to_otel_span(self, span: Span) -> ReadableSpan:
        from opentelemetry.sdk.trace import Event, ReadableSpan
        from opentelemetry.sdk.util.instrumentation import InstrumentationScope
        from opentelemetry.trace import SpanContext, TraceFlags
        from opentelemetry.trace import SpanKind as OtelSpanKind
        from opentelemetry.trace.status import Status, StatusCode

        kind = {"tool": OtelSpanKind.INTERNAL, "external": OtelSpanKind.CLIENT}.get(span.kind.value, OtelSpanKind.INTERNAL)
        trace_id = int(span.context.trace_id, 16)
        ctx = SpanContext(trace_id=trace_id, span_id=int(span.context.span_id, 16),
                          is_remote=False, trace_flags=TraceFlags(TraceFlags.SAMPLED))
        parent = (SpanContext(trace_id=trace_id, span_id=int(span.context.parent_id, 16),
                              is_remote=False, trace_flags=TraceFlags(TraceFlags.SAMPLED))
                  if span.context.parent_id else None)

        start_ns = int(span.start_time * 1e9)
        end_ns = int(span.end_time * 1e9) if span.end_time else start_ns
        status = (Status(StatusCode.ERROR, span.error or "") if span.status.value == "error"
                  else Status(StatusCode.OK) if span.status.value == "ok" else Status(StatusCode.UNSET))
        events = tuple(Event(name=e.name, timestamp=int(e.timestamp * 1e9), attributes=_flatten(e.attributes))
                       for e in span.events)

        return ReadableSpan(
            name=span.name, context=ctx, parent=parent, resource=self._resource,
            attributes=_flatten(span.attributes), events=events, kind=kind, status=status,
            start_time=start_ns, end_time=end_ns,
            instrumentation_scope=InstrumentationScope(name="toolrelay"),
        )

    def shutdown(self) -> None:
        if self._exporter is not None:
            self._exporter.shutdown()


def _flatten(attrs: JsonDict) -> dict[str, str | int | float | bool]:
    """OTel attributes are primitives only; everything else becomes JSON text."""
    def convert(v: object) -> str | int | float | bool:
        if isinstance(v, (str, int, float, bool)):
            return v
        return "" if v is None else orjson.dumps(v, default=str).decode()
    return {k: convert(v) for k, v in attrs.items()}
