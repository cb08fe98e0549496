"""Service workers that claim jobs, dispatch handlers and persist outcomes."""

from __future__ import annotations

import math
import random
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Final

from helios_worker.config.logging_config import (
    bind_context,
    get_logger,
    unbind_context,
)
from helios_worker.domain.exceptions import (
    HandlerNotFoundError,
    MalformedJobError,
    StorageError,
)
from helios_worker.domain.job_context import JobContext
from helios_worker.domain.models import Failed, Outcome, RawJob
from helios_worker.handlers.registry import HandlerRegistry
from helios_worker.observability.metrics import (
    JOB_OUTCOMES_TOTAL,
    OUTCOME_PERSIST_RETRIES_TOTAL,
)
from helios_worker.ports.job_queue import JobQueuePort
from helios_worker.runtime.handler_runner import CancelSignal, HandlerRunner

logger = get_logger(__name__)

_DEFAULT_BATCH_SIZE: Final[int] = 8
_DEFAULT_PERSIST_MAX_ATTEMPTS: Final[int] = 3
_DEFAULT_PERSIST_BACKOFF_SECONDS: Final[float] = 0.5
_PERSIST_BACKOFF_MAX_SECONDS: Final[float] = 30.0


class ServiceWorker:
    """One worker slot: claims a job, runs its handler, persists the outcome."""

    def __init__(
        self,
        *,
        job_queue: JobQueuePort,
        registry: HandlerRegistry,
        runner: HandlerRunner,
        service_config: Mapping[str, Any] | None = None,
        batch_size: int = _DEFAULT_BATCH_SIZE,
        persist_max_attempts: int = _DEFAULT_PERSIST_MAX_ATTEMPTS,
        persist_backoff_seconds: float = _DEFAULT_PERSIST_BACKOFF_SECONDS,
        jitter_provider: Callable[[float], float] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size <= 0:
            msg = "batch_size must be positive"
            raise ValueError(msg)
        if persist_max_attempts <= 0:
            msg = "persist_max_attempts must be positive"
            raise ValueError(msg)

        self._job_queue = job_queue
        self._registry = registry
        self._runner = runner
        self._service_config = dict(service_config or {})
        self._batch_size = batch_size
        self._persist_max_attempts = persist_max_attempts
        self._persist_backoff_seconds = max(0.0, persist_backoff_seconds)
        self._jitter_provider = jitter_provider or _default_jitter
        self._sleep = sleep

    def process_available_jobs(self, cancel: CancelSignal | None = None) -> int:
        """Claim and process up to ``batch_size`` jobs."""

        processed = 0
        while processed < self._batch_size:
            if cancel is not None and cancel.is_set():
                break
            if self.process_next_job(cancel) is None:
                break
            processed += 1
        return processed

    def process_next_job(
        self, cancel: CancelSignal | None = None
    ) -> Outcome | None:
        """Run the next queued job; return its outcome, or None if idle.

        Raises:
            StorageError: The outcome could not be persisted after all retries.
        """

        raw_job = self._job_queue.claim_next_job()
        if raw_job is None:
            return None

        logger.info(
            "job_claimed",
            job_id=raw_job.job_id,
            handler=raw_job.handler,
            attempts=raw_job.attempts,
        )
        outcome = self._run(raw_job, cancel)
        self._persist(raw_job.job_id, outcome)
        return outcome

    def _run(self, raw_job: RawJob, cancel: CancelSignal | None) -> Outcome:
        try:
            context = JobContext.from_raw(raw_job, self._service_config)
        except MalformedJobError as exc:
            logger.warning("job_malformed", job_id=raw_job.job_id, detail=exc.detail)
            return self._rejected(raw_job, f"malformed job: {exc.detail}")

        try:
            handler = self._registry.create(raw_job.handler)
        except HandlerNotFoundError:
            logger.error(
                "job_handler_not_found", job_id=raw_job.job_id, handler=raw_job.handler
            )
            return self._rejected(
                raw_job, f"no handler registered for {raw_job.handler!r}"
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "job_handler_factory_failed",
                job_id=raw_job.job_id,
                handler=raw_job.handler,
            )
            return self._rejected(
                raw_job, f"handler {raw_job.handler!r} could not be created: {exc}"
            )

        return self._runner.dispatch(
            context, handler, cancel=cancel, handler_name=raw_job.handler
        )

    def _rejected(self, raw_job: RawJob, reason: str) -> Failed:
        outcome = Failed(reason=reason, retryable=False)
        JOB_OUTCOMES_TOTAL.labels(handler=raw_job.handler, status=outcome.status).inc()
        return outcome

    def _persist(self, job_id: str, outcome: Outcome) -> None:
        attempt = 1
        while True:
            try:
                self._job_queue.persist_outcome(job_id, outcome)
            except StorageError as exc:
                if attempt >= self._persist_max_attempts:
                    logger.error(
                        "job_outcome_persist_failed",
                        job_id=job_id,
                        status=outcome.status,
                        attempts=attempt,
                        error=str(exc),
                    )
                    raise
                delay = self._compute_retry_delay(attempt)
                OUTCOME_PERSIST_RETRIES_TOTAL.inc()
                logger.warning(
                    "job_outcome_persist_retry",
                    job_id=job_id,
                    attempt=attempt,
                    delay_seconds=delay,
                    error=str(exc),
                )
                self._sleep(delay)
                attempt += 1
            else:
                logger.info(
                    "job_outcome_persisted",
                    job_id=job_id,
                    status=outcome.status,
                    attempts=attempt,
                )
                return

    def _compute_retry_delay(self, attempt: int) -> float:
        base_delay = min(
            _PERSIST_BACKOFF_MAX_SECONDS,
            self._persist_backoff_seconds * math.pow(2.0, max(attempt - 1, 0)),
        )
        jitter = max(0.0, self._jitter_provider(base_delay))
        return base_delay + jitter


class WorkerPool:
    """Runs several worker slots in parallel, one job per slot at a time."""

    def __init__(self, workers: Sequence[ServiceWorker]) -> None:
        if not workers:
            raise ValueError("workers must not be empty")
        self._workers = list(workers)

    @property
    def slots(self) -> int:
        return len(self._workers)

    def process_available_jobs(self, cancel: CancelSignal | None = None) -> int:
        """Let every slot drain one batch; return the number of jobs handled.

        Raises:
            StorageError: A slot could not persist an outcome.
        """

        if len(self._workers) == 1:
            return self._run_slot(0, cancel)

        with ThreadPoolExecutor(
            max_workers=len(self._workers), thread_name_prefix="helios-slot"
        ) as executor:
            futures = [
                executor.submit(self._run_slot, slot, cancel)
                for slot in range(len(self._workers))
            ]
            return sum(future.result() for future in futures)

    def _run_slot(self, slot: int, cancel: CancelSignal | None) -> int:
        bind_context(worker_slot=slot)
        try:
            return self._workers[slot].process_available_jobs(cancel)
        finally:
            unbind_context("worker_slot")


def _default_jitter(base: float) -> float:
    return random.uniform(0.0, base * 0.25)


__all__ = ["ServiceWorker", "WorkerPool"]
