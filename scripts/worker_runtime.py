"""Common runtime helpers for worker entry points."""

from __future__ import annotations

import signal
import threading
import time
from dataclasses import dataclass
from types import FrameType

from helios_worker.config.logging_config import get_logger, setup_logging
from helios_worker.config.settings import Settings
from helios_worker.runtime.handler_runner import CancelSignal
from helios_worker.workers import ServiceWorker, WorkerPool

logger = get_logger(__name__)


@dataclass
class _ShutdownController:
    """Mutable shutdown state shared across signal handlers and loops."""

    _event: threading.Event

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)

    def request(self, signum: int, frame: FrameType | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("shutdown_signal_received", signal=sig_name)
        self._event.set()


def create_shutdown_controller() -> _ShutdownController:
    return _ShutdownController(threading.Event())


def install_signal_handlers(controller: _ShutdownController) -> None:
    """Register SIGTERM/SIGINT handlers for graceful shutdown."""

    def _handler(signum: int, frame: FrameType | None) -> None:
        controller.request(signum, frame)

    signal.signal(signal.SIGTERM, _handler)
    signal.signal(signal.SIGINT, _handler)


def initialize_logging(settings: Settings, *, json_logs: bool = False) -> None:
    """Initialize structlog-based logging for scripts."""

    json_logs = json_logs or settings.json_logs
    setup_logging(log_level=settings.log_level, json_logs=json_logs)
    logger.info("logging_initialized", level=settings.log_level, json_logs=json_logs)


def run_worker_loop(
    worker: ServiceWorker | WorkerPool,
    controller: CancelSignal,
    *,
    poll_interval: float,
    run_once: bool = False,
    idle_backoff_seconds: float = 0.1,
) -> None:
    """Run a worker until shutdown is requested.

    The shutdown signal doubles as the cancellation signal for in-flight
    handlers, so a stopping worker reports them as retryable failures.
    """

    poll_interval = max(0.1, poll_interval)
    idle_backoff_seconds = max(0.0, idle_backoff_seconds)

    logger.info(
        "worker_loop_started",
        poll_interval=poll_interval,
        run_once=run_once,
    )

    iteration = 0
    while not controller.is_set():
        iteration += 1
        try:
            processed = worker.process_available_jobs(controller)
        except Exception:  # noqa: BLE001
            logger.exception("worker_iteration_failed", iteration=iteration)
            if run_once:
                raise
            controller.wait(poll_interval)
            continue

        if run_once:
            break

        if processed <= 0:
            controller.wait(poll_interval)
        elif idle_backoff_seconds:
            time.sleep(idle_backoff_seconds)

    logger.info("worker_loop_stopped", iterations=iteration)


__all__ = [
    "create_shutdown_controller",
    "initialize_logging",
    "install_signal_handlers",
    "run_worker_loop",
]
