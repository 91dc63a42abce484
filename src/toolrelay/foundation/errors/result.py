"""Result type for tool calls that must never raise.

A discriminated union for success/failure. Every public entry point in
toolrelay returns one of these instead of letting an exception escape:

    >>> Ok("done").success
    True
    >>> Err("boom").map(str.upper)
    Err('boom')

The ``success``/``data``/``error`` accessors mirror the wire shape
``{success: true, data}`` / ``{success: false, error}`` so results can be
inspected the same way on both sides of the agent loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterator

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")

_OK = True
_ERR = False


class Result(Generic[T, E]):
    """Success (Ok) or failure (Err). Exactly one variant is ever present."""

    __slots__ = ("_value", "_is_ok")
    __match_args__ = ("success", "_value")

    def __init__(self, value: T | E, is_ok: bool) -> None:
        self._value = value
        self._is_ok = is_ok

    # ─── Variant Inspection ───────────────────────────────────────────

    @property
    def success(self) -> bool:
        return self._is_ok

    @property
    def data(self) -> T | None:
        """Ok payload, or None on Err."""
        return self._value if self._is_ok else None  # type: ignore[return-value]

    @property
    def error(self) -> E | None:
        """Err payload, or None on Ok."""
        return None if self._is_ok else self._value  # type: ignore[return-value]

    def is_ok(self) -> bool:
        return self._is_ok

    def is_err(self) -> bool:
        return not self._is_ok

    # ─── Extraction ───────────────────────────────────────────────────

    def unwrap(self) -> T:
        """Ok payload. Raises RuntimeError on Err."""
        if self._is_ok:
            return self._value  # type: ignore[return-value]
        raise RuntimeError(f"unwrap() on Err: {self._value!r}")

    def unwrap_err(self) -> E:
        """Err payload. Raises RuntimeError on Ok."""
        if not self._is_ok:
            return self._value  # type: ignore[return-value]
        raise RuntimeError(f"unwrap_err() on Ok: {self._value!r}")

    def unwrap_or(self, default: T) -> T:
        return self._value if self._is_ok else default  # type: ignore[return-value]

    # ─── Transformation ───────────────────────────────────────────────

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        return Result(f(self._value), _OK) if self._is_ok else Result(self._value, _ERR)  # type: ignore[arg-type]

    def map_err(self, f: Callable[[E], F]) -> Result[T, F]:
        return Result(self._value, _OK) if self._is_ok else Result(f(self._value), _ERR)  # type: ignore[arg-type]

    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return f(self._value) if self._is_ok else Result(self._value, _ERR)  # type: ignore[arg-type]

    # ─── Dunder Methods ───────────────────────────────────────────────

    def __bool__(self) -> bool:
        return self._is_ok

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self._is_ok == other._is_ok and self._value == other._value

    def __hash__(self) -> int:
        return hash((self._is_ok, self._value))

    def __repr__(self) -> str:
        return f"{'Ok' if self._is_ok else 'Err'}({self._value!r})"

    def __iter__(self) -> Iterator[T]:
        if self._is_ok:
            yield self._value  # type: ignore[misc]

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: ``{"success": True, "data": ...}`` or ``{"success": False, "error": ...}``."""
        if self._is_ok:
            return {"success": True, "data": self._value}
        err = self._value
        return {"success": False, "error": err.to_dict() if hasattr(err, "to_dict") else err}


def Ok(value: T) -> Result[T, Any]:  # noqa: N802
    """Construct the success variant."""
    return Result(value, _OK)


def Err(error: E) -> Result[Any, E]:  # noqa: N802
    """Construct the failure variant."""
    return Result(error, _ERR)
