"""Port definition for the job log sink."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class LogSinkPort(Protocol):
    """Append-only destination for handler log lines.

    Implementations must accept concurrent writes from parallel worker slots.
    """

    def emit(self, job_id: str, message: str) -> None:
        """Record one log line tagged with its job identifier."""


__all__ = ["LogSinkPort"]
