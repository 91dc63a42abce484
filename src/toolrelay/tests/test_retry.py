"""Tests for with_retry, RetryPolicy and backoff schedules.

Sleeps are recorded instead of awaited so delays can be asserted exactly.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from toolrelay.foundation.errors import Ok, ToolErrorCode, ToolResult, tool_failure
from toolrelay.runtime.retry import (
    NO_RETRY,
    ConstantBackoff,
    ExponentialBackoff,
    RetryEvent,
    RetryPolicy,
    with_retry,
)


class RecordedSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class Scripted:
    """Returns (or raises) the scripted outcomes in order; the last one repeats."""

    def __init__(self, *outcomes: ToolResult[str] | Exception) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> ToolResult[str]:
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


# ═════════════════════════════════════════════════════════════════════════════
# with_retry
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_first_success_needs_no_sleep() -> None:
    sleep, fn = RecordedSleep(), Scripted(Ok("done"))
    assert await with_retry(fn, sleep=sleep) == Ok("done")
    assert fn.calls == 1 and sleep.delays == []


@pytest.mark.asyncio
async def test_rate_limit_waits_flat_delay() -> None:
    sleep = RecordedSleep()
    fn = Scripted(tool_failure(ToolErrorCode.RATE_LIMITED, "HTTP 429", retryable=True), Ok("done"))

    assert await with_retry(fn, sleep=sleep) == Ok("done")
    assert fn.calls == 2
    assert sleep.delays == [30.0]


@pytest.mark.asyncio
async def test_rate_limit_delay_applies_on_every_retry() -> None:
    sleep = RecordedSleep()
    fn = Scripted(tool_failure(ToolErrorCode.RATE_LIMITED, "slow down", retryable=True))

    result = await with_retry(fn, sleep=sleep)
    assert result.unwrap_err().code == ToolErrorCode.RATE_LIMITED
    assert fn.calls == 3
    assert sleep.delays == [30.0, 30.0]


@pytest.mark.asyncio
async def test_generic_retryable_backs_off_exponentially() -> None:
    sleep = RecordedSleep()
    fn = Scripted(tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "Timeout after 10ms", retryable=True))

    result = await with_retry(fn, sleep=sleep)
    assert result.unwrap_err().message == "Timeout after 10ms"
    assert fn.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_non_retryable_stops_immediately() -> None:
    sleep = RecordedSleep()
    fn = Scripted(tool_failure(ToolErrorCode.TOOL_INVALID_INPUT, "missing field"), Ok("never"))
    assert not (await with_retry(fn, sleep=sleep)).success
    assert fn.calls == 1 and sleep.delays == []


@pytest.mark.asyncio
async def test_auth_like_message_is_never_retried() -> None:
    sleep = RecordedSleep()
    fn = Scripted(tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "HTTP 401: Unauthorized", retryable=True))
    await with_retry(fn, sleep=sleep)
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_exception_counts_as_attempt() -> None:
    sleep = RecordedSleep()
    fn = Scripted(RuntimeError("timeout talking to upstream"), Ok("done"))
    assert await with_retry(fn, sleep=sleep) == Ok("done")
    assert fn.calls == 2


@pytest.mark.asyncio
async def test_non_retryable_exception_becomes_failure() -> None:
    fn = Scripted(ValueError("bad"))
    err = (await with_retry(fn, sleep=RecordedSleep())).unwrap_err()
    assert err.code == ToolErrorCode.TOOL_EXECUTION_FAILED
    assert err.message == "bad"
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_on_retry_reports_each_scheduled_retry() -> None:
    events: list[RetryEvent] = []
    fn = Scripted(tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "503", retryable=True))

    await with_retry(fn, RetryPolicy(max_attempts=3), on_retry=events.append, sleep=RecordedSleep())

    assert [(e.attempt, e.delay_ms) for e in events] == [(1, 1000), (2, 2000)]
    assert events[0].error.message == "503"


@pytest.mark.asyncio
async def test_no_retry_policy() -> None:
    fn = Scripted(tool_failure(ToolErrorCode.RATE_LIMITED, "429", retryable=True))
    await with_retry(fn, NO_RETRY, sleep=RecordedSleep())
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_unvalidated_zero_attempts_still_answers() -> None:
    fn = Scripted(Ok("never"))
    err = (await with_retry(fn, RetryPolicy.model_construct(max_attempts=0), sleep=RecordedSleep())).unwrap_err()
    assert fn.calls == 0
    assert err.code == ToolErrorCode.TOOL_EXECUTION_FAILED
    assert err.message == "Unknown tool failure"


# ═════════════════════════════════════════════════════════════════════════════
# Policy & Backoff
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("attempts", [0, 11])
def test_max_attempts_bounds(attempts: int) -> None:
    with pytest.raises(ValidationError):
        RetryPolicy(max_attempts=attempts)


def test_custom_backoff() -> None:
    policy = RetryPolicy(backoff=ConstantBackoff(0.25), rate_limit_delay=2.0)
    generic = tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, "x", retryable=True).unwrap_err()
    limited = tool_failure(ToolErrorCode.RATE_LIMITED, "x", retryable=True).unwrap_err()
    assert policy.get_delay(generic, 3) == 0.25
    assert policy.get_delay(limited, 3) == 2.0


def test_exponential_backoff_schedule() -> None:
    backoff = ExponentialBackoff()
    assert [backoff.delay(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]
    assert ExponentialBackoff(base=10, max_delay=15).delay(3) == 15


def test_jitter_stays_in_range() -> None:
    backoff = ExponentialBackoff(base=1.0, jitter=True)
    for _ in range(50):
        assert 0.5 <= backoff.delay(0) <= 1.5


def test_policy_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOOLRELAY_RETRY_RATE_LIMIT_DELAY", "5")
    monkeypatch.setenv("TOOLRELAY_EXECUTION_MAX_RETRIES", "4")
    policy = RetryPolicy.from_settings()
    assert policy.max_attempts == 4
    assert policy.rate_limit_delay == 5.0
