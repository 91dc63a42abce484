"""Backoff strategies for the retry wrapper.

Attempt numbers are 0-indexed (first retry = attempt 0); delays are seconds.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class Backoff(Protocol):
    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (0-indexed)."""
        ...


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Delay = min(base * multiplier^attempt, max_delay), optionally jittered 0.5-1.5x.

    The defaults give 1s, 2s, 4s, ...
    """

    base: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: bool = False

    def delay(self, attempt: int) -> float:
        d = min(self.base * (self.multiplier ** attempt), self.max_delay)
        return d * (0.5 + random.random()) if self.jitter else d


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    """Fixed delay between retries."""

    delay_seconds: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.delay_seconds
