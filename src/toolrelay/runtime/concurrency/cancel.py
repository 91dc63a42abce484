"""Cooperative cancellation for in-flight tool calls.

A CancelToken is the signal threaded through every layer of a call: the
executor's per-attempt timer, the caller's own abort, and the MCP client's
request deadline all fire tokens, and ``linked`` tokens combine them so
whichever fires first wins.

Example:
    >>> token = CancelToken()
    >>> with CancelToken.linked(token, caller_signal) as signal:
    ...     result = await signal.run(fetch())
    >>> token.cancel("user pressed stop")  # fetch() is cancelled, run() raises OperationAborted
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from typing import Callable, TypeVar

from toolrelay.foundation.errors import OperationAborted

T = TypeVar("T")

Listener = Callable[[str], None]


class CancelToken:
    """One-shot cancellation signal. Once cancelled it stays cancelled."""

    __slots__ = ("_reason", "_listeners", "_event")

    def __init__(self) -> None:
        self._reason: str | None = None
        self._listeners: list[Listener] = []
        self._event = asyncio.Event()

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled}, reason={self._reason!r})"

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Fire the token. Listeners run once, synchronously, in registration order."""
        if self._reason is not None:
            return
        self._reason = reason or "Operation aborted"
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self._reason)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it.

        Registering on an already-cancelled token invokes the callback immediately.
        """
        if self._reason is not None:
            listener(self._reason)
            return lambda: None
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return remove

    def raise_if_cancelled(self) -> None:
        """Checkpoint for long-running handlers."""
        if self._reason is not None:
            raise OperationAborted(self._reason)

    async def wait(self) -> str:
        """Block until cancelled; returns the reason."""
        await self._event.wait()
        return self._reason or "Operation aborted"

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        When the token wins the inner task is cancelled and OperationAborted is
        raised with the token's reason.
        """
        if self._reason is not None:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationAborted(self._reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task.done() and not task.cancelled():
            return task.result()
        raise OperationAborted(self._reason)

    @classmethod
    @contextmanager
    def linked(cls, *parents: CancelToken | None) -> Iterator[CancelToken]:
        """Child token that fires when any parent fires. Detaches from parents on exit."""
        child = cls()
        removers = [p.add_listener(child.cancel) for p in parents if p is not None]
        try:
            yield child
        finally:
            for remove in removers:
                remove()
