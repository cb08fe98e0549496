"""Write-once outcome slot and the completion capability given to handlers."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any, Final

from helios_worker.config.logging_config import get_logger
from helios_worker.domain.exceptions import ProtocolViolation
from helios_worker.domain.job_context import JobContext
from helios_worker.domain.models import (
    CANCELLED_REASON,
    Completed,
    Failed,
    InvocationState,
    outcome_state,
)
from helios_worker.observability.metrics import PROTOCOL_VIOLATIONS_TOTAL
from helios_worker.ports.log_sink import LogSinkPort

logger = get_logger(__name__)

_DUPLICATE_CALL: Final[str] = "duplicate_terminal_call"
_CALL_AFTER_CANCEL: Final[str] = "terminal_call_after_cancel"


class HandlerInvocation:
    """Binds one job to its outcome slot and log sink for a single dispatch.

    The outcome slot accepts exactly one writer. Every later attempt to set it
    is recorded as a protocol violation and otherwise ignored.
    """

    def __init__(self, context: JobContext, log_sink: LogSinkPort) -> None:
        self._context = context
        self._log_sink = log_sink
        self._lock = threading.Lock()
        self._state = InvocationState.PENDING
        self._outcome: Completed | Failed | None = None
        self._cancelled = False
        self._violations: list[ProtocolViolation] = []

    @property
    def context(self) -> JobContext:
        return self._context

    @property
    def job_id(self) -> str:
        return self._context.job_id

    @property
    def state(self) -> InvocationState:
        with self._lock:
            return self._state

    @property
    def outcome(self) -> Completed | Failed | None:
        with self._lock:
            return self._outcome

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    @property
    def violations(self) -> list[ProtocolViolation]:
        with self._lock:
            return list(self._violations)

    def start(self) -> None:
        with self._lock:
            if self._state is not InvocationState.PENDING:
                raise RuntimeError(
                    f"Invocation for job {self.job_id} already started "
                    f"(state={self._state})"
                )
            self._state = InvocationState.RUNNING

    def resolve(
        self, outcome: Completed | Failed, *, call: str | None = None
    ) -> bool:
        """Fix the outcome if it is still open.

        ``call`` names the handler API that produced the outcome. Implicit
        resolutions by the runner pass None and are never violations.

        Returns:
            True when this call set the outcome, False when it was already
            fixed (a handler call is then recorded as a protocol violation).
        """

        with self._lock:
            if self._state is InvocationState.PENDING:
                raise RuntimeError(f"Invocation for job {self.job_id} not started")
            if self._outcome is None:
                self._outcome = outcome
                self._state = outcome_state(outcome)
                return True
            if call is None:
                return False
            kind = _CALL_AFTER_CANCEL if self._cancelled else _DUPLICATE_CALL
            violation = ProtocolViolation(
                self.job_id,
                f"{call}() ignored, outcome already {self._state}",
            )
            self._violations.append(violation)

        PROTOCOL_VIOLATIONS_TOTAL.labels(kind=kind).inc()
        logger.warning(
            "handler_protocol_violation",
            job_id=self.job_id,
            call=call,
            kind=kind,
            detail=violation.detail,
        )
        return False

    def cancel(self) -> bool:
        """Mark the invocation cancelled.

        Returns:
            True when cancellation fixed the outcome, False when the handler
            had already reported one.
        """

        with self._lock:
            if self._state is InvocationState.PENDING:
                raise RuntimeError(f"Invocation for job {self.job_id} not started")
            if self._outcome is not None:
                return False
            self._cancelled = True
            self._outcome = Failed(reason=CANCELLED_REASON, retryable=True)
            self._state = InvocationState.FAILED
            return True

    def emit_log(self, message: str) -> None:
        try:
            self._log_sink.emit(self.job_id, message)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "log_sink_emit_failed",
                job_id=self.job_id,
                error=f"{type(exc).__name__}: {exc}",
            )


class CompletionHandle:
    """Capability through which a handler logs and reports its outcome."""

    __slots__ = ("_invocation",)

    def __init__(self, invocation: HandlerInvocation) -> None:
        self._invocation = invocation

    @property
    def job_id(self) -> str:
        return self._invocation.job_id

    @property
    def cancelled(self) -> bool:
        """True once the host cancelled this invocation; handlers should stop."""

        return self._invocation.cancelled

    def complete(self, metadata: Mapping[str, Any] | None = None) -> None:
        self._invocation.resolve(
            Completed(metadata=dict(metadata or {})), call="complete"
        )

    def fail(self, reason: str, retryable: bool = False) -> None:
        self._invocation.resolve(
            Failed(reason=str(reason), retryable=bool(retryable)), call="fail"
        )

    def log(self, message: str) -> None:
        """Send one log line to the job log; sink errors never reach the handler."""

        self._invocation.emit_log(str(message))


__all__ = ["CompletionHandle", "HandlerInvocation"]
