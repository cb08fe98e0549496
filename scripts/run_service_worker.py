"""Entry point for a Helios service worker."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from helios_worker.adapters.job_queue_inmemory import (
    InMemoryJobQueue,
    load_jobs_file,
)
from helios_worker.adapters.log_sink import StructlogLogSink
from helios_worker.config.logging_config import get_logger
from helios_worker.config.settings import get_settings
from helios_worker.handlers import default_registry
from helios_worker.observability.metrics import ensure_metrics_exporter
from helios_worker.runtime.handler_runner import HandlerRunner
from helios_worker.workers import ServiceWorker, WorkerPool
from scripts import worker_runtime

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Helios service worker")
    parser.add_argument(
        "--service",
        default=None,
        help="Service name (defaults to the configured service)",
    )
    parser.add_argument(
        "--jobs-file",
        type=Path,
        default=None,
        help="JSON-lines file of jobs to seed the in-memory queue with",
    )
    parser.add_argument(
        "--poll-interval-seconds",
        type=float,
        default=None,
        help="Seconds to wait between claims when idle",
    )
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Process one batch per slot and exit",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs in JSON format",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    settings = get_settings()
    if args.service:
        settings = settings.model_copy(update={"service_name": args.service})
    worker_runtime.initialize_logging(settings, json_logs=args.json_logs)

    controller = worker_runtime.create_shutdown_controller()
    worker_runtime.install_signal_handlers(controller)

    try:
        service_config = settings.service_config()
    except ValueError as exc:
        logger.error("service_config_invalid", service=settings.service_name, error=str(exc))
        return 1

    job_queue = InMemoryJobQueue()
    if args.jobs_file is not None:
        try:
            load_jobs_file(args.jobs_file, job_queue)
        except OSError as exc:
            logger.error("jobs_file_unreadable", path=str(args.jobs_file), error=str(exc))
            return 1

    if settings.metrics_port:
        ensure_metrics_exporter(settings.metrics_port)

    registry = default_registry()
    runner = HandlerRunner(
        StructlogLogSink(service=settings.service_name),
        cancel_poll_interval=settings.cancel_poll_interval_seconds,
    )
    pool = WorkerPool(
        [
            ServiceWorker(
                job_queue=job_queue,
                registry=registry,
                runner=runner,
                service_config=service_config,
                persist_max_attempts=settings.persist_max_attempts,
                persist_backoff_seconds=settings.persist_backoff_seconds,
            )
            for _ in range(settings.worker_slots)
        ]
    )
    logger.info(
        "service_worker_starting",
        service=settings.service_name,
        slots=pool.slots,
        handlers=registry.names(),
    )

    poll_interval = (
        args.poll_interval_seconds
        if args.poll_interval_seconds is not None
        else settings.poll_interval_seconds
    )
    worker_runtime.run_worker_loop(
        pool,
        controller,
        poll_interval=poll_interval,
        run_once=args.run_once,
    )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
