"""In-process job queue for development and testing."""

from __future__ import annotations

import json
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from pydantic import ValidationError

from helios_worker.config.logging_config import get_logger
from helios_worker.domain.exceptions import StorageError
from helios_worker.domain.models import Failed, Outcome, RawJob
from helios_worker.ports.job_queue import JobQueuePort

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS: Final[int] = 3


@dataclass
class JobRecord:
    """Internal bookkeeping for a queued job."""

    raw_job: RawJob
    claimed: bool = field(default=False)
    outcomes: list[Outcome] = field(default_factory=list)


class InMemoryJobQueue(JobQueuePort):
    """Thread-safe FIFO queue that re-queues retryable failures."""

    def __init__(self, *, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self._max_attempts = max_attempts
        self._pending: deque[str] = deque()
        self._jobs: dict[str, JobRecord] = {}
        self._lock = threading.RLock()

    def enqueue(self, raw_job: RawJob) -> None:
        with self._lock:
            if raw_job.job_id in self._jobs:
                raise ValueError(f"Duplicate job_id: {raw_job.job_id}")
            self._jobs[raw_job.job_id] = JobRecord(raw_job=raw_job)
            self._pending.append(raw_job.job_id)
        logger.debug("job_enqueued", job_id=raw_job.job_id, handler=raw_job.handler)

    def claim_next_job(self) -> RawJob | None:
        with self._lock:
            if not self._pending:
                return None
            job_id = self._pending.popleft()
            record = self._jobs[job_id]
            record.claimed = True
            return record.raw_job

    def persist_outcome(self, job_id: str, outcome: Outcome) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                raise StorageError(f"Unknown job_id: {job_id}")
            if not record.claimed:
                raise StorageError(f"Job {job_id} is not claimed")

            record.outcomes.append(outcome)
            record.claimed = False

            attempts = record.raw_job.attempts + 1
            if (
                isinstance(outcome, Failed)
                and outcome.retryable
                and attempts < self._max_attempts
            ):
                record.raw_job = record.raw_job.model_copy(update={"attempts": attempts})
                self._pending.append(job_id)
                logger.info("job_requeued", job_id=job_id, attempts=attempts)

    def outcome(self, job_id: str) -> Outcome | None:
        """Return the most recent persisted outcome for a job."""

        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                raise KeyError(f"Unknown job_id: {job_id}")
            return record.outcomes[-1] if record.outcomes else None

    def history(self, job_id: str) -> list[Outcome]:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                raise KeyError(f"Unknown job_id: {job_id}")
            return list(record.outcomes)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)


def load_jobs_file(path: Path, queue: InMemoryJobQueue) -> int:
    """Seed a queue from a JSON-lines file, one job record per line.

    Lines that do not describe a job are logged and skipped.
    """

    loaded = 0
    with open(path, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                raw_job = RawJob.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(
                    "jobs_file_line_invalid",
                    path=str(path),
                    line=line_number,
                    error=str(e),
                )
                continue
            queue.enqueue(raw_job)
            loaded += 1

    logger.info("jobs_file_loaded", path=str(path), jobs=loaded)
    return loaded


__all__ = ["DEFAULT_MAX_ATTEMPTS", "InMemoryJobQueue", "load_jobs_file"]
