from __future__ import annotations

from pathlib import Path

import pytest

from helios_worker.adapters.job_queue_inmemory import InMemoryJobQueue, load_jobs_file
from helios_worker.domain.exceptions import StorageError
from helios_worker.domain.models import Completed, Failed, RawJob


def _job(job_id: str, **kwargs: object) -> RawJob:
    return RawJob(job_id=job_id, handler="log_arguments", **kwargs)


def test_claims_in_fifo_order(job_queue: InMemoryJobQueue) -> None:
    job_queue.enqueue(_job("a"))
    job_queue.enqueue(_job("b"))

    assert job_queue.claim_next_job().job_id == "a"
    assert job_queue.claim_next_job().job_id == "b"
    assert job_queue.claim_next_job() is None


def test_duplicate_job_id_rejected(job_queue: InMemoryJobQueue) -> None:
    job_queue.enqueue(_job("a"))

    with pytest.raises(ValueError, match="Duplicate job_id"):
        job_queue.enqueue(_job("a"))


def test_persist_records_outcome(job_queue: InMemoryJobQueue) -> None:
    job_queue.enqueue(_job("a"))
    job_queue.claim_next_job()

    job_queue.persist_outcome("a", Completed())

    assert job_queue.outcome("a") == Completed()
    assert job_queue.pending_count == 0


def test_persist_unknown_or_unclaimed_job_raises(job_queue: InMemoryJobQueue) -> None:
    job_queue.enqueue(_job("a"))

    with pytest.raises(StorageError, match="Unknown job_id"):
        job_queue.persist_outcome("zzz", Completed())
    with pytest.raises(StorageError, match="not claimed"):
        job_queue.persist_outcome("a", Completed())


def test_retryable_failure_is_requeued_until_max_attempts() -> None:
    queue = InMemoryJobQueue(max_attempts=2)
    queue.enqueue(_job("a"))

    first = queue.claim_next_job()
    queue.persist_outcome("a", Failed(reason="cancelled", retryable=True))
    second = queue.claim_next_job()
    queue.persist_outcome("a", Failed(reason="cancelled", retryable=True))

    assert first.attempts == 0
    assert second.attempts == 1
    assert queue.claim_next_job() is None
    assert len(queue.history("a")) == 2


def test_non_retryable_failure_is_not_requeued(job_queue: InMemoryJobQueue) -> None:
    job_queue.enqueue(_job("a"))
    job_queue.claim_next_job()

    job_queue.persist_outcome("a", Failed(reason="bad", retryable=False))

    assert job_queue.claim_next_job() is None


def test_load_jobs_file_skips_invalid_lines(
    tmp_path: Path, job_queue: InMemoryJobQueue
) -> None:
    jobs_file = tmp_path / "jobs.jsonl"
    jobs_file.write_text(
        "\n".join(
            [
                '{"job_id": "1", "handler": "log_arguments", "arguments": {"a": "b"}}',
                "not json",
                '{"handler": "log_arguments"}',
                "",
                '{"job_id": "2", "handler": "log_arguments", "arguments": "{\\"x\\": 1}"}',
            ]
        ),
        encoding="utf-8",
    )

    loaded = load_jobs_file(jobs_file, job_queue)

    assert loaded == 2
    assert job_queue.pending_count == 2
    assert job_queue.claim_next_job().arguments == {"a": "b"}
    assert job_queue.claim_next_job().arguments == '{"x": 1}'


def test_rejects_non_positive_max_attempts() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        InMemoryJobQueue(max_attempts=0)
