"""Per-server availability telemetry.

Advisory only: nothing here blocks a call. Unknown servers are available.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt

from toolrelay.runtime.observability.logging import get_logger

log = get_logger("toolrelay.mcp.health")


class ServerHealth(BaseModel):
    """Health record for one MCP server, created on its first failure."""

    model_config = ConfigDict(frozen=True)

    name: Annotated[str, Field(min_length=1)]
    available: bool = True
    last_error: str | None = None
    last_error_time: datetime | None = None
    failure_count: NonNegativeInt = 0


class HealthTracker:
    """Records failures and recoveries per server name.

    Example:
        >>> health = HealthTracker()
        >>> health.mark_server_unavailable("rube", ConnectionError("refused"))
        >>> health.is_server_available("rube")
        False
        >>> health.mark_server_available("rube")
        >>> health.is_server_available("rube")
        True
    """

    __slots__ = ("_records", "_lock")

    def __init__(self) -> None:
        self._records: dict[str, ServerHealth] = {}
        self._lock = threading.Lock()

    def mark_server_unavailable(self, name: str, error: BaseException | str) -> ServerHealth:
        message = str(error) or type(error).__name__
        with self._lock:
            previous = self._records.get(name)
            record = ServerHealth(
                name=name,
                available=False,
                last_error=message,
                last_error_time=datetime.now(UTC),
                failure_count=(previous.failure_count if previous else 0) + 1,
            )
            self._records[name] = record
        log.error("mcp_server_unavailable", server=name, error=message, failure_count=record.failure_count)
        return record

    def mark_server_available(self, name: str) -> None:
        """Flip a tracked server back to available; untracked servers are left alone."""
        with self._lock:
            previous = self._records.get(name)
            if previous is None:
                return
            self._records[name] = previous.model_copy(update={"available": True})
        if not previous.available:
            log.info("mcp_server_recovered", server=name, previous_failures=previous.failure_count)

    def is_server_available(self, name: str) -> bool:
        with self._lock:
            record = self._records.get(name)
        return record.available if record else True

    def get_all_server_health(self) -> list[ServerHealth]:
        with self._lock:
            return list(self._records.values())

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
