"""Deadline wrapper that always answers.

``with_timeout`` hands the wrapped function a fresh CancelToken, races it
against a timer, and converts every outcome into a ToolResult: the timer
winning fires the token (aborting any in-flight MCP request) and yields a
retryable failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Callable, TypeVar

from toolrelay.foundation.errors import ToolErrorCode, ToolResult, is_retryable, tool_failure

from .concurrency import CancelToken

T = TypeVar("T")

TokenFn = Callable[[CancelToken], Awaitable[ToolResult[T]]]


async def with_timeout(fn: TokenFn[T], timeout_ms: int) -> ToolResult[T]:
    """Run ``fn(token)`` with a deadline. Never raises (except task cancellation).

    Example:
        >>> result = await with_timeout(lambda token: client.call_tool("search", args, signal=token), 30_000)
        >>> result.error.message if not result.success else result.data
        'Timeout after 30000ms'
    """
    token = CancelToken()
    try:
        task = asyncio.ensure_future(fn(token))
    except Exception as e:  # fn raised before producing an awaitable
        return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, str(e) or type(e).__name__, retryable=is_retryable(e))

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        token.cancel("Cancelled")
        task.cancel()
        raise

    if task not in done:
        message = f"Timeout after {timeout_ms}ms"
        token.cancel(message)
        task.cancel()
        return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, message, retryable=True)

    if task.cancelled():
        return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, token.reason or "Operation cancelled", retryable=True)
    if (exc := task.exception()) is not None:
        return tool_failure(ToolErrorCode.TOOL_EXECUTION_FAILED, str(exc) or type(exc).__name__, retryable=is_retryable(exc))
    return task.result()
