"""Observability: structured logging and tracing.

Example:
    >>> from toolrelay.runtime.observability import configure_observability
    >>> configure_observability()  # reads TOOLRELAY_LOG_* / TOOLRELAY_TRACING_*
"""

from __future__ import annotations

from .logging import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    LogEntry,
    LogRenderer,
    LogScope,
    MemoryRenderer,
    NoOpRenderer,
    configure_logging,
    get_logger,
)
from .tracing import (
    ConsoleExporter,
    Exporter,
    JsonExporter,
    MemoryExporter,
    NoOpExporter,
    Span,
    SpanContext,
    SpanKind,
    SpanStatus,
    TraceContext,
    Tracer,
    configure_tracing,
    get_tracer,
    reset_tracing,
)


def configure_observability() -> None:
    """Apply logging and tracing settings from the environment."""
    from toolrelay.foundation.config import get_settings

    settings = get_settings()
    configure_logging(format=settings.logging.format, level=settings.logging.level)
    if settings.tracing.enabled:
        configure_tracing(
            service_name=settings.tracing.service_name,
            exporter=settings.tracing.exporter,
            endpoint=settings.tracing.otlp_endpoint,
        )


__all__ = [
    # Logging
    "BoundLogger", "LogEntry", "LogRenderer", "LogScope", "ConsoleRenderer", "JsonRenderer",
    "MemoryRenderer", "NoOpRenderer", "configure_logging", "get_logger",
    # Tracing
    "Span", "SpanContext", "SpanKind", "SpanStatus", "TraceContext", "Tracer",
    "configure_tracing", "get_tracer", "reset_tracing",
    "Exporter", "NoOpExporter", "MemoryExporter", "ConsoleExporter", "JsonExporter",
    # Setup
    "configure_observability",
]
