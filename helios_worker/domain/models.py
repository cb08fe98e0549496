"""Domain models for claimed jobs and their outcomes.

All models use Pydantic v2 for validation and serialization.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_COMPLETION_REASON: Final[str] = "handler did not report completion"
CANCELLED_REASON: Final[str] = "cancelled"
NO_OUTCOME_REASON: Final[str] = "handler terminated without an outcome"

ArgumentValue = str | int | float | bool | None


class InvocationState(StrEnum):
    """Lifecycle of a single handler invocation."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (InvocationState.COMPLETED, InvocationState.FAILED)


class RawJob(BaseModel):
    """Job record as claimed from the queue, before argument decoding.

    ``arguments`` is kept undecoded: queues may hand over a mapping or the
    JSON text they stored. Decoding happens in ``JobContext.from_raw``.
    """

    job_id: str
    handler: str
    arguments: Any = Field(default_factory=dict)
    attempts: int = 0

    @field_validator("attempts")
    @classmethod
    def _validate_attempts(cls, value: int) -> int:
        if value < 0:
            msg = "attempts must be non-negative"
            raise ValueError(msg)
        return value


class Completed(BaseModel):
    """Terminal outcome of a handler that reported success."""

    model_config = ConfigDict(frozen=True)

    status: Literal["completed"] = "completed"
    metadata: dict[str, Any] = Field(default_factory=dict)


class Failed(BaseModel):
    """Terminal outcome of a handler that failed or broke the contract."""

    model_config = ConfigDict(frozen=True)

    status: Literal["failed"] = "failed"
    reason: str
    retryable: bool = False


Outcome = Annotated[Completed | Failed, Field(discriminator="status")]


def outcome_state(outcome: Completed | Failed) -> InvocationState:
    """Map an outcome to the terminal invocation state it represents."""

    if isinstance(outcome, Completed):
        return InvocationState.COMPLETED
    return InvocationState.FAILED


__all__ = [
    "ArgumentValue",
    "CANCELLED_REASON",
    "Completed",
    "Failed",
    "InvocationState",
    "NO_COMPLETION_REASON",
    "NO_OUTCOME_REASON",
    "Outcome",
    "RawJob",
    "outcome_state",
]
