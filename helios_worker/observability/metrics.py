"""Prometheus metrics for handler dispatch and outcome persistence."""

from __future__ import annotations

import threading
from typing import Final

from prometheus_client import Counter, Histogram, start_http_server

from helios_worker.config.logging_config import get_logger

logger = get_logger(__name__)

JOBS_DISPATCHED_TOTAL: Final[Counter] = Counter(
    "helios_jobs_dispatched_total",
    "Total number of jobs handed to a handler",
    labelnames=("handler",),
)

JOB_OUTCOMES_TOTAL: Final[Counter] = Counter(
    "helios_job_outcomes_total",
    "Terminal job outcomes by status",
    labelnames=("handler", "status"),
)

HANDLER_DURATION_SECONDS: Final[Histogram] = Histogram(
    "helios_handler_duration_seconds",
    "Wall-clock duration of handler invocations in seconds",
    labelnames=("handler",),
)

PROTOCOL_VIOLATIONS_TOTAL: Final[Counter] = Counter(
    "helios_protocol_violations_total",
    "Terminal calls rejected because the outcome was already fixed",
    labelnames=("kind",),
)

OUTCOME_PERSIST_RETRIES_TOTAL: Final[Counter] = Counter(
    "helios_outcome_persist_retries_total",
    "Retries performed while persisting job outcomes",
)

_EXPORTER_LOCK = threading.Lock()
_EXPORTER_STARTED = False


def ensure_metrics_exporter(port: int) -> None:
    """Start Prometheus HTTP exporter once per process."""

    global _EXPORTER_STARTED
    with _EXPORTER_LOCK:
        if _EXPORTER_STARTED:
            return

        try:
            start_http_server(port)
        except OSError as exc:
            logger.error(
                "metrics_exporter_start_failed",
                port=port,
                error=str(exc),
            )
            raise

        _EXPORTER_STARTED = True
        logger.info("metrics_exporter_started", port=port)


__all__ = [
    "HANDLER_DURATION_SECONDS",
    "JOBS_DISPATCHED_TOTAL",
    "JOB_OUTCOMES_TOTAL",
    "OUTCOME_PERSIST_RETRIES_TOTAL",
    "PROTOCOL_VIOLATIONS_TOTAL",
    "ensure_metrics_exporter",
]
