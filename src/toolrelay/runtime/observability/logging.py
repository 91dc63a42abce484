"""Structured logging with trace correlation.

Every entry is an event name plus key/value context, merged with the active
span's trace/span ids so logs line up with ``tool.execute`` traces:

    >>> from toolrelay.runtime.observability import configure_logging, get_logger
    >>> configure_logging(format="json")
    >>> log = get_logger("toolrelay.registry")
    >>> log.info("tools.registry.updated", static_count=2, mcp_count=5)
    {"timestamp": "...", "level": "info", "event": "tools.registry.updated", "logger": "toolrelay.registry", ...}

Formats: "console" (human, stderr), "json" (JSON lines via orjson, stdout), "none".
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, TextIO, runtime_checkable

import orjson

JsonDict = dict[str, Any]

_log_context: ContextVar[JsonDict | None] = ContextVar("toolrelay_log_context", default=None)

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "critical",
}


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict

    @property
    def ts_iso(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()

    @property
    def ts_human(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]


@dataclass(slots=True)
class BoundLogger:
    """Logger with bound context. ``bind()`` returns a new logger; the original is untouched."""

    context: JsonDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None

    def bind(self, **kw: Any) -> BoundLogger:
        return BoundLogger(context={**self.context, **kw}, _renderer=self._renderer)

    def _log(self, level: int, event: str, **kw: Any) -> None:
        if level < _config.level:
            return
        # scoped -> bound -> call-site -> active span
        merged = {**(_log_context.get() or {}), **self.context, **{k: v for k, v in kw.items() if v is not None}}
        merged.update(_get_trace_context())
        (self._renderer or _config.renderer).render(LogEntry(time.time(), _LEVEL_NAMES[level], event, merged))

    def debug(self, event: str, **kw: Any) -> None:
        self._log(logging.DEBUG, event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._log(logging.INFO, event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._log(logging.WARNING, event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._log(logging.ERROR, event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the current traceback attached."""
        self._log(logging.ERROR, event, exc_info=traceback.format_exc(), **kw)


class LogScope:
    """Context manager adding keys to every entry logged inside it.

    Example:
        >>> with LogScope(trace_id="abc123"):
        ...     log.info("tools.discovery.started")  # includes trace_id
    """

    __slots__ = ("_ctx", "_token")

    def __init__(self, **ctx: Any) -> None:
        self._ctx = ctx
        self._token = None

    def __enter__(self) -> LogScope:
        self._token = _log_context.set({**(_log_context.get() or {}), **self._ctx})
        return self

    def __exit__(self, *_: object) -> None:
        if self._token is not None:
            _log_context.reset(self._token)


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


@dataclass(slots=True)
class ConsoleRenderer:
    """Human-readable output: ``HH:MM:SS.mmm [level] event key=value ...``"""

    output: TextIO = field(default_factory=lambda: sys.stderr)

    def render(self, entry: LogEntry) -> None:
        parts = [entry.ts_human, f"[{entry.level}]", entry.event]
        parts += [f"{k}={v!r}" for k, v in sorted(entry.context.items()) if k != "exc_info"]
        print(" ".join(parts), file=self.output)
        if "exc_info" in entry.context:
            print(entry.context["exc_info"], file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines for log aggregation."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        line = orjson.dumps(
            {"timestamp": entry.ts_iso, "level": entry.level, "event": entry.event, **entry.context},
            option=orjson.OPT_NON_STR_KEYS,
            default=str,
        )
        print(line.decode(), file=self.output)


@dataclass(slots=True)
class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        pass


@dataclass(slots=True)
class MemoryRenderer:
    """Keeps entries in memory; for assertions in tests."""

    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self, name: str | None = None) -> list[LogEntry]:
        return [e for e in self.entries if name is None or e.event == name]


# ─────────────────────────────────────────────────────────────────────────────
# Global Configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class _LogConfig:
    renderer: LogRenderer = field(default_factory=JsonRenderer)
    level: int = logging.INFO


_config = _LogConfig()


def configure_logging(
    format: str = "json",  # noqa: A002
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    renderer: LogRenderer | None = None,
) -> LogRenderer:
    """Configure process-wide structured logging. Returns the active renderer."""
    _config.level = getattr(logging, level.upper(), logging.INFO)
    if renderer is None:
        match format:
            case "console":
                renderer = ConsoleRenderer(output=output or sys.stderr)
            case "json":
                renderer = JsonRenderer(output=output or sys.stdout)
            case "none":
                renderer = NoOpRenderer()
            case _:
                raise ValueError(f"Unknown format: {format}. Use 'console', 'json', or 'none'")
    _config.renderer = renderer
    return renderer


def get_logger(name: str | None = None, **initial_context: Any) -> BoundLogger:
    """Structured logger; ``name`` is recorded under the ``logger`` key."""
    ctx = {**({"logger": name} if name else {}), **initial_context}
    return BoundLogger(context=ctx)


def _get_trace_context() -> JsonDict:
    from .tracing import TraceContext

    if (ctx := TraceContext.get()) is None:
        return {}
    sc = ctx.span_context
    return {"span_trace_id": sc.trace_id, "span_id": sc.span_id}
