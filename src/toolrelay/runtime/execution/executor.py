"""Public entry point for the agent loop: run one tool call, always answer.

Each call is composed as retry -> timeout -> route. Every attempt gets its own
CancelToken, linked to the caller's signal, so either the per-attempt
deadline or the caller can abort it. The outcome is a ToolResult[str]:
on success the text handed back to the model, on failure a short advisory
sentence naming the tool.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Annotated, Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from toolrelay.foundation.errors import (
    Err,
    Ok,
    OperationAborted,
    ToolError,
    ToolErrorCode,
    ToolResult,
    format_error_for_claude,
    normalize_tool_error,
    to_tool_error,
)
from toolrelay.runtime.concurrency import CancelToken
from toolrelay.runtime.observability.logging import get_logger
from toolrelay.runtime.observability.tracing import Span, SpanKind, SpanStatus, Tracer
from toolrelay.runtime.retry import RetryEvent, RetryPolicy, with_retry
from toolrelay.runtime.timeout import with_timeout

from .sanitize import sanitize_arguments
from .types import JsonDict, RouteFn, ToolCall, ToolUse

log = get_logger("toolrelay.executor")

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_RETRIES = 3


class ExecuteOptions(BaseModel):
    """Per-call execution settings.

    Attributes:
        trace_id: Correlates logs and spans for the agent turn
        timeout_ms: Deadline for each attempt
        max_retries: Total attempts (including the first)
        signal: Caller's cancellation; aborts the in-flight attempt and stops retrying
        retry_policy: Full override of the retry schedule (max_retries is then ignored)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    trace_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timeout_ms: PositiveInt = DEFAULT_TIMEOUT_MS
    max_retries: Annotated[int, Field(ge=1, le=10)] = DEFAULT_MAX_RETRIES
    signal: CancelToken | None = None
    retry_policy: RetryPolicy | None = None

    @classmethod
    def from_settings(cls, trace_id: str, *, signal: CancelToken | None = None) -> ExecuteOptions:
        """Options from TOOLRELAY_EXECUTION_* / TOOLRELAY_RETRY_* settings."""
        from toolrelay.foundation.config import get_settings

        execution = get_settings().execution
        return cls(
            trace_id=trace_id,
            timeout_ms=execution.timeout_ms,
            max_retries=execution.max_retries,
            signal=signal,
            retry_policy=RetryPolicy.from_settings(execution.max_retries),
        )

    def policy(self) -> RetryPolicy:
        return self.retry_policy or RetryPolicy(max_attempts=self.max_retries)


@dataclass(slots=True)
class _Progress:
    attempts: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# Execution
# ═══════════════════════════════════════════════════════════════════════════════


async def execute(
    tool_name: str,
    tool_use_id: str,
    args: JsonDict,
    route_fn: RouteFn,
    options: ExecuteOptions | None = None,
) -> ToolResult[str]:
    """Run one tool call under timeout and retry. Never raises.

    Example:
        >>> result = await execute("rube__search", "tu_1", {"query": "hi"}, router, ExecuteOptions(trace_id="t-1"))
        >>> result.data if result.success else result.error.message
        'ok'
    """
    options = options or ExecuteOptions()
    progress = _Progress()
    start = time.perf_counter()
    attrs = {
        "tool": tool_name,
        "tool_use_id": tool_use_id,
        "trace_id": options.trace_id,
        "timeout_ms": options.timeout_ms,
        "max_retries": options.policy().max_attempts,
        "args": sanitize_arguments(args),
    }

    with Tracer.current().span("tool.execute", SpanKind.TOOL, attrs) as span:
        try:
            raw = await with_retry(
                lambda: _attempt(tool_name, tool_use_id, args, route_fn, options, progress),
                options.policy(),
                on_retry=lambda event: _on_retry(span, tool_name, options.trace_id, event),
                sleep=lambda delay: _backoff_sleep(delay, options.signal),
            )
            outcome: ToolResult[str] = raw.map(to_model_content) if raw.success else Err(raw.unwrap_err())
        except Exception as e:
            log.exception("tool.execute.unexpected", tool=tool_name, trace_id=options.trace_id)
            outcome = Err(to_tool_error(e))

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        span.set_attributes({"duration_ms": duration_ms, "attempts": progress.attempts, "success": outcome.success})

        if outcome.success:
            log.info("tool.execute.completed", tool=tool_name, trace_id=options.trace_id,
                     success=True, attempts=progress.attempts, duration_ms=duration_ms)
            return outcome

        error = outcome.unwrap_err()
        span.set_attribute("error_code", error.code.value).set_status(SpanStatus.ERROR, error.message)
        log.warning("tool.execute.completed", tool=tool_name, trace_id=options.trace_id, success=False,
                    attempts=progress.attempts, duration_ms=duration_ms, error_code=error.code.value,
                    error_message=error.message)
        return Err(error.with_message(format_error_for_claude(tool_name, error)))


async def _attempt(
    tool_name: str,
    tool_use_id: str,
    args: JsonDict,
    route_fn: RouteFn,
    options: ExecuteOptions,
    progress: _Progress,
) -> ToolResult[Any]:
    progress.attempts += 1
    if (cancelled := _cancelled(options.signal)) is not None:
        return cancelled

    async def run(token: CancelToken) -> ToolResult[Any]:
        with CancelToken.linked(token, options.signal) as signal:
            return await route_fn(ToolCall(tool_name, tool_use_id, args, options.trace_id, signal))

    result = await with_timeout(run, options.timeout_ms)
    if result.success:
        return result
    # Whatever the route reported, a caller abort ends the call
    if (cancelled := _cancelled(options.signal)) is not None:
        return cancelled
    return Err(normalize_tool_error(result.unwrap_err()))


def _cancelled(signal: CancelToken | None) -> ToolResult[Any] | None:
    if signal is None or not signal.cancelled:
        return None
    return Err(ToolError.create(ToolErrorCode.TOOL_EXECUTION_FAILED, f"Tool call cancelled: {signal.reason}"))


async def _backoff_sleep(delay: float, signal: CancelToken | None) -> None:
    """Backoff that ends early when the caller aborts; the next attempt then reports the cancel."""
    if signal is None:
        await asyncio.sleep(delay)
        return
    try:
        await signal.run(asyncio.sleep(delay))
    except OperationAborted:
        pass


def _on_retry(span: Span, tool_name: str, trace_id: str, event: RetryEvent) -> None:
    span.add_event("retry", {"attempt": event.attempt, "delay_ms": event.delay_ms, "code": event.error.code.value})
    log.warning("tool.retry", tool=tool_name, trace_id=trace_id, attempt=event.attempt,
                delay_ms=event.delay_ms, code=event.error.code.value, message=event.error.message)


async def execute_many(
    calls: Sequence[ToolUse],
    route_fn: RouteFn,
    options: ExecuteOptions | None = None,
) -> list[ToolResult[str]]:
    """Run several tool calls concurrently; results keep input order.

    Each call has its own timeout/retry pipeline and token. A failing or slow
    call never cancels its siblings.
    """
    options = options or ExecuteOptions()
    return list(await asyncio.gather(*(execute(c.tool_name, c.tool_use_id, c.args, route_fn, options) for c in calls)))


# ═══════════════════════════════════════════════════════════════════════════════
# Model-Facing Content
# ═══════════════════════════════════════════════════════════════════════════════


def to_model_content(data: object) -> str:
    """Text for the model's tool-result turn.

    Strings pass through; MCP content blocks with text are joined by newlines;
    anything else is JSON.
    """
    if isinstance(data, str):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, exclude_none=True)
    if isinstance(data, Mapping) and isinstance(blocks := data.get("content"), list):
        texts = [b["text"] for b in blocks if isinstance(b, Mapping) and isinstance(b.get("text"), str) and b["text"]]
        if texts:
            return "\n".join(texts)
    try:
        return orjson.dumps(data, default=str, option=orjson.OPT_NON_STR_KEYS).decode()
    except orjson.JSONEncodeError:
        return str(data)
