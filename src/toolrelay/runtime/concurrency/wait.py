"""Wait strategies for fan-out over servers and tool calls.

``gather_settled`` waits for every operation and reports each outcome, so
one failure never cancels its siblings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class SettledStatus(StrEnum):
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


@dataclass(slots=True, frozen=True)
class Settled(Generic[T]):
    """Outcome of one operation: a value or the exception it raised."""

    status: SettledStatus
    value: T | None = None
    error: BaseException | None = None

    @property
    def is_fulfilled(self) -> bool:
        return self.status == SettledStatus.FULFILLED

    @property
    def is_rejected(self) -> bool:
        return self.status == SettledStatus.REJECTED

    def unwrap(self) -> T:
        if self.is_rejected:
            raise self.error or RuntimeError("Rejected with no error")
        return self.value  # type: ignore[return-value]


async def gather_settled(*aws: Awaitable[T]) -> list[Settled[T]]:
    """Wait for all operations; results keep input order.

    Example:
        >>> results = await gather_settled(discover(a), discover(b))
        >>> failed = [r.error for r in results if r.is_rejected]
    """
    if not aws:
        return []
    raw = await asyncio.gather(*aws, return_exceptions=True)
    return [
        Settled(SettledStatus.REJECTED, error=r) if isinstance(r, BaseException) else Settled(SettledStatus.FULFILLED, value=r)
        for r in raw
    ]
