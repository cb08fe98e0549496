"""Port definition for the host job queue."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from helios_worker.domain.models import Outcome, RawJob


@runtime_checkable
class JobQueuePort(Protocol):
    """Interface implemented by job queue adapters."""

    def claim_next_job(self) -> RawJob | None:
        """Claim the next runnable job, or return None when nothing is queued."""

    def persist_outcome(self, job_id: str, outcome: Outcome) -> None:
        """Record the terminal outcome of a claimed job.

        Raises:
            StorageError: The outcome could not be stored.
        """


__all__ = ["JobQueuePort"]
