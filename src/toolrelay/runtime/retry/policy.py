"""Classification-driven retry for ToolResult-returning operations.

A failure is retried only when it is marked retryable and its message does
not look like a client/auth failure. Rate limits wait a flat cooldown;
everything else backs off exponentially.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Annotated, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat

from toolrelay.foundation.errors import ToolError, ToolErrorCode, ToolResult, is_retryable, tool_failure
from toolrelay.runtime.observability.logging import get_logger

from .backoff import Backoff, ExponentialBackoff

T = TypeVar("T")

log = get_logger("toolrelay.retry")

# Substring match on free text; a port number like ":4040" also matches
_CLIENT_ERROR_MARKERS: tuple[str, ...] = ("400", "401", "403", "404")


@dataclass(slots=True, frozen=True)
class RetryEvent:
    """Passed to ``on_retry`` before each backoff sleep."""

    attempt: int  # 1-indexed attempt that just failed
    error: ToolError
    delay_ms: int


class RetryPolicy(BaseModel):
    """Retry budget and delay schedule.

    Attributes:
        max_attempts: Total attempts including the first
        backoff: Delay schedule for generic retryable failures
        rate_limit_delay: Flat delay in seconds after RATE_LIMITED

    Example:
        >>> RetryPolicy(max_attempts=5, backoff=ExponentialBackoff(base=0.5))
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    backoff: Backoff = Field(default_factory=ExponentialBackoff, repr=False)
    rate_limit_delay: NonNegativeFloat = 30.0

    @classmethod
    def from_settings(cls, max_attempts: int | None = None) -> RetryPolicy:
        from toolrelay.foundation.config import get_settings

        s = get_settings()
        return cls(
            max_attempts=max_attempts or s.execution.max_retries,
            backoff=ExponentialBackoff(base=s.retry.base_delay, multiplier=s.retry.multiplier, jitter=s.retry.jitter),
            rate_limit_delay=s.retry.rate_limit_delay,
        )

    def should_retry(self, error: ToolError) -> bool:
        if not error.retryable:
            return False
        return not any(marker in error.message for marker in _CLIENT_ERROR_MARKERS)

    def get_delay(self, error: ToolError, attempt: int) -> float:
        """Seconds before the next attempt, after ``attempt`` (1-indexed) failed."""
        if error.code == ToolErrorCode.RATE_LIMITED:
            return self.rate_limit_delay
        return self.backoff.delay(attempt - 1)


NO_RETRY = RetryPolicy(max_attempts=1)


async def with_retry(
    fn: Callable[[], Awaitable[ToolResult[T]]],
    policy: RetryPolicy | None = None,
    *,
    on_retry: Callable[[RetryEvent], None] | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> ToolResult[T]:
    """Run ``fn`` until it succeeds, a failure is not retryable, or attempts run out.

    An exception raised by ``fn`` counts as a TOOL_EXECUTION_FAILED attempt
    whose retryability comes from ``is_retryable``. Returns the last failure
    when the budget is exhausted.

    Example:
        >>> result = await with_retry(lambda: client.list_tools(), RetryPolicy(max_attempts=2))
    """
    policy = policy or RetryPolicy()
    result: ToolResult[T] | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await fn()
        except Exception as e:
            result = tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, str(e) or type(e).__name__, retryable=is_retryable(e))

        if result.success:
            return result

        error = result.unwrap_err()
        if attempt >= policy.max_attempts or not policy.should_retry(error):
            return result

        delay = policy.get_delay(error, attempt)
        event = RetryEvent(attempt=attempt, error=error, delay_ms=round(delay * 1000))
        log.debug("retry.scheduled", attempt=attempt, max_attempts=policy.max_attempts,
                  code=error.code.value, delay_ms=event.delay_ms)
        if on_retry is not None:
            on_retry(event)
        await sleep(delay)

    return result if result is not None else tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "Unknown tool failure")
