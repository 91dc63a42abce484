"""Tracer for creating and managing spans.

Context managers own the span lifecycle: entering activates the span for
the current task (so nested work becomes its child) and exiting ends and
exports it.
"""

from __future__ import annotations

from contextvars import Token
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .context import TraceContext
from .exporter import ConsoleExporter, Exporter, JsonExporter, MemoryExporter, NoOpExporter, create_otlp_exporter
from .span import JsonDict, Span, SpanKind, SpanStatus

if TYPE_CHECKING:
    from types import TracebackType

_global_tracer: Tracer | None = None


@dataclass(slots=True)
class Tracer:
    """Creates spans and hands completed ones to an exporter.

    Usage:
        >>> tracer = Tracer(service_name="agent", exporter=ConsoleExporter())
        >>> tracer.configure_global()
        >>> with tracer.span("tool.execute", SpanKind.TOOL) as span:
        ...     span.set_attribute("tool", "rube__search")

    Args:
        service_name: Name identifying this service in traces
        exporter: Where to send completed spans
        enabled: False makes every span a detached no-op
    """

    service_name: str = "toolrelay"
    exporter: Exporter = field(default_factory=ConsoleExporter)
    enabled: bool = True

    def configure_global(self) -> None:
        global _global_tracer
        _global_tracer = self

    @classmethod
    def get_global(cls) -> Tracer | None:
        return _global_tracer

    @classmethod
    def current(cls) -> Tracer:
        """Global tracer, or a disabled one when none is configured."""
        return _global_tracer or cls(enabled=False, exporter=NoOpExporter())

    def span(self, name: str, kind: SpanKind = SpanKind.INTERNAL, attributes: JsonDict | None = None) -> SpanContextManager:
        return SpanContextManager(self, name, kind, attributes or {})

    def start_span(self, name: str, kind: SpanKind = SpanKind.INTERNAL, attributes: JsonDict | None = None) -> Span:
        """Start a span manually (caller must end it). It is not made active."""
        attrs = {"service.name": self.service_name, **(attributes or {})} if self.enabled else dict(attributes or {})
        return Span(name=name, context=TraceContext.next_span(), kind=kind, attributes=attrs)

    def end_span(self, span: Span, status: SpanStatus = SpanStatus.OK, error: str | None = None) -> None:
        span.end(status=status, error=error)
        if self.enabled:
            self.exporter.export([span])

    def shutdown(self) -> None:
        self.exporter.shutdown()


@dataclass(slots=True)
class SpanContextManager:
    """Activates the span on enter; ends, exports, and deactivates on exit."""

    tracer: Tracer
    name: str
    kind: SpanKind
    attributes: JsonDict
    _span: Span | None = None
    _token: Token[TraceContext | None] | None = None

    def __enter__(self) -> Span:
        self._span = self.tracer.start_span(self.name, self.kind, self.attributes)
        if self.tracer.enabled:
            self._token = TraceContext.activate(self._span.context)
        return self._span

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None) -> None:
        if self._span is None:
            return
        if self._token is not None:
            TraceContext.restore(self._token)
            self._token = None
        if exc_val is not None:
            self.tracer.end_span(self._span, SpanStatus.ERROR, str(exc_val) or type(exc_val).__name__)
        else:
            status = self._span.status if self._span.status != SpanStatus.UNSET else SpanStatus.OK
            self.tracer.end_span(self._span, status)

    async def __aenter__(self) -> Span:
        return self.__enter__()

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


# ─────────────────────────────────────────────────────────────────────────────
# Convenience Functions
# ─────────────────────────────────────────────────────────────────────────────


def get_tracer() -> Tracer:
    return Tracer.current()


def configure_tracing(
    service_name: str = "toolrelay",
    exporter: str | Exporter = "console",
    *,
    endpoint: str | None = None,
    verbose: bool = False,
) -> Tracer:
    """Configure global tracing.

    Args:
        service_name: Name for this service in traces
        exporter: "console", "json", "memory", "otlp", "none", or an Exporter instance
        endpoint: OTLP endpoint (otlp only)
        verbose: Show attributes in console output

    Example:
        >>> configure_tracing(service_name="agent", exporter="otlp", endpoint="http://otel-collector:4317")
    """
    if isinstance(exporter, str):
        exporters = {
            "console": lambda: ConsoleExporter(verbose=verbose),
            "json": JsonExporter,
            "memory": MemoryExporter,
            "otlp": lambda: create_otlp_exporter(endpoint=endpoint or "http://localhost:4317", service_name=service_name),
            "none": NoOpExporter,
        }
        if exporter not in exporters:
            raise ValueError(f"Unknown exporter: {exporter}. Use 'console', 'json', 'memory', 'otlp', or 'none'")
        exp = exporters[exporter]()
    else:
        exp = exporter

    tracer = Tracer(service_name=service_name, exporter=exp, enabled=exporter != "none")
    tracer.configure_global()
    return tracer


def reset_tracing() -> None:
    """Drop the global tracer; spans become no-ops again."""
    global _global_tracer
    _global_tracer = None
