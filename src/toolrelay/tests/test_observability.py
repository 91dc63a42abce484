"""Tests for structured logging, tracing and argument sanitizing."""

from __future__ import annotations

import io

import orjson
import pytest

from toolrelay.runtime.execution import sanitize_arguments
from toolrelay.runtime.execution.sanitize import REDACTED, TRUNCATED_SUFFIX
from toolrelay.runtime.observability import (
    LogScope,
    MemoryExporter,
    MemoryRenderer,
    SpanKind,
    SpanStatus,
    TraceContext,
    Tracer,
    configure_logging,
    configure_tracing,
    get_logger,
    get_tracer,
)


# ═════════════════════════════════════════════════════════════════════════════
# Logging
# ═════════════════════════════════════════════════════════════════════════════


def test_json_lines_output() -> None:
    buf = io.StringIO()
    configure_logging(format="json", output=buf)

    get_logger("toolrelay.test").info("tools.registry.updated", static_count=2, skipped=None)

    line = orjson.loads(buf.getvalue().strip())
    assert line["event"] == "tools.registry.updated"
    assert line["level"] == "info"
    assert line["logger"] == "toolrelay.test"
    assert line["static_count"] == 2
    assert "skipped" not in line
    assert "timestamp" in line


def test_console_output() -> None:
    buf = io.StringIO()
    configure_logging(format="console", output=buf)
    get_logger().warning("tool.retry", attempt=1)
    assert "[warning] tool.retry attempt=1" in buf.getvalue()


def test_level_filtering() -> None:
    memory = MemoryRenderer()
    configure_logging(level="WARNING", renderer=memory)
    log = get_logger("t")
    log.info("quiet")
    log.error("loud")
    assert [e.event for e in memory.entries] == ["loud"]


def test_unknown_format() -> None:
    with pytest.raises(ValueError):
        configure_logging(format="xml")


def test_bind_and_scope(logs: MemoryRenderer) -> None:
    log = get_logger("t").bind(server_name="rube")
    with LogScope(trace_id="turn-1"):
        log.info("inside")
    log.info("outside")

    inside, outside = logs.events("inside")[0], logs.events("outside")[0]
    assert inside.context["trace_id"] == "turn-1"
    assert inside.context["server_name"] == "rube"
    assert "trace_id" not in outside.context


def test_exception_attaches_traceback(logs: MemoryRenderer) -> None:
    try:
        raise RuntimeError("kaboom")
    except RuntimeError:
        get_logger().exception("failed")
    assert "kaboom" in logs.events("failed")[0].context["exc_info"]


def test_log_carries_active_span_ids(logs: MemoryRenderer, spans: MemoryExporter) -> None:
    with get_tracer().span("outer") as span:
        get_logger().info("traced")
    entry = logs.events("traced")[0]
    assert entry.context["span_trace_id"] == span.context.trace_id
    assert entry.context["span_id"] == span.context.span_id


# ═════════════════════════════════════════════════════════════════════════════
# Tracing
# ═════════════════════════════════════════════════════════════════════════════


def test_spans_nest_and_restore(spans: MemoryExporter) -> None:
    tracer = get_tracer()
    with tracer.span("outer", SpanKind.TOOL) as outer:
        with tracer.span("inner") as inner:
            pass
        with tracer.span("sibling") as sibling:
            pass

    assert TraceContext.get() is None
    assert inner.context.parent_id == outer.context.span_id
    assert sibling.context.parent_id == outer.context.span_id
    assert [s.name for s in spans.spans] == ["inner", "sibling", "outer"]
    assert outer.attributes["service.name"] == "toolrelay-tests"


def test_exception_marks_span_error(spans: MemoryExporter) -> None:
    with pytest.raises(ValueError):
        with get_tracer().span("boom"):
            raise ValueError("bad")
    [span] = spans.named("boom")
    assert span.status == SpanStatus.ERROR
    assert span.error == "bad"
    assert span.duration_ms is not None


@pytest.mark.asyncio
async def test_async_span(spans: MemoryExporter) -> None:
    async with get_tracer().span("async.work") as span:
        span.add_event("retry", {"attempt": 1})
    [exported] = spans.named("async.work")
    assert exported.to_dict()["events"][0]["attributes"] == {"attempt": 1}


def test_unconfigured_tracer_is_disabled() -> None:
    tracer = Tracer.current()
    assert not tracer.enabled
    with tracer.span("ignored"):
        assert TraceContext.get() is None


def test_configure_tracing_by_name() -> None:
    tracer = configure_tracing(service_name="svc", exporter="memory")
    assert isinstance(tracer.exporter, MemoryExporter)
    assert Tracer.get_global() is tracer
    with pytest.raises(ValueError):
        configure_tracing(exporter="carrier-pigeon")


# ═════════════════════════════════════════════════════════════════════════════
# Sanitizing
# ═════════════════════════════════════════════════════════════════════════════


def test_sanitize_arguments() -> None:
    cleaned = sanitize_arguments({
        "query": "hi",
        "API_KEY": "sk-1",
        "password": "hunter2",
        "body": "x" * 250,
        "nested": {"token": "kept-as-is"},
    })
    assert cleaned["query"] == "hi"
    assert cleaned["API_KEY"] == REDACTED
    assert cleaned["password"] == REDACTED
    assert cleaned["body"] == "x" * 200 + TRUNCATED_SUFFIX
    assert cleaned["nested"] == {"token": "kept-as-is"}


def test_sanitize_non_mapping() -> None:
    assert sanitize_arguments(["a"]) == {}
