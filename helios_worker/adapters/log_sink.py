"""Log sink adapters for handler log lines."""

from __future__ import annotations

import threading
from collections import defaultdict

from helios_worker.config.logging_config import HANDLER_LOG_EVENT, get_logger
from helios_worker.ports.log_sink import LogSinkPort

logger = get_logger(__name__)


class StructlogLogSink(LogSinkPort):
    """Forward handler log lines to the structured application log."""

    def __init__(self, *, service: str | None = None) -> None:
        self._service = service
        self._lock = threading.Lock()

    def emit(self, job_id: str, message: str) -> None:
        with self._lock:
            logger.info(
                HANDLER_LOG_EVENT,
                job_id=job_id,
                service=self._service,
                message=message,
            )


class InMemoryLogSink(LogSinkPort):
    """Keeps handler log lines in memory, grouped by job, for inspection."""

    def __init__(self) -> None:
        self._lines: dict[str, list[str]] = defaultdict(list)
        self._lock = threading.Lock()

    def emit(self, job_id: str, message: str) -> None:
        with self._lock:
            self._lines[job_id].append(message)

    def lines_for(self, job_id: str) -> list[str]:
        with self._lock:
            return list(self._lines.get(job_id, ()))

    def job_ids(self) -> list[str]:
        with self._lock:
            return list(self._lines)


__all__ = ["InMemoryLogSink", "StructlogLogSink"]
