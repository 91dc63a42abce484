"""Tracing: spans, context propagation, tracer, exporters."""

from .context import SpanContext, TraceContext
from .exporter import (
    ConsoleExporter,
    Exporter,
    JsonExporter,
    MemoryExporter,
    NoOpExporter,
    OTLPBridge,
    create_otlp_exporter,
)
from .span import Span, SpanEvent, SpanKind, SpanStatus
from .tracer import Tracer, configure_tracing, get_tracer, reset_tracing

__all__ = [
    # Context
    "SpanContext", "TraceContext",
    # Span
    "Span", "SpanEvent", "SpanKind", "SpanStatus",
    # Tracer
    "Tracer", "configure_tracing", "get_tracer", "reset_tracing",
    # Exporters
    "Exporter", "NoOpExporter", "MemoryExporter", "ConsoleExporter", "JsonExporter",
    "OTLPBridge", "create_otlp_exporter",
]
