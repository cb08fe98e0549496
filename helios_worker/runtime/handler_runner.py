"""Executes one handler invocation per job and normalizes its outcome."""

from __future__ import annotations

import threading
import time
from typing import Final, Protocol

from helios_worker.config.logging_config import get_logger
from helios_worker.domain.exceptions import HandlerFailure
from helios_worker.domain.job_context import JobContext
from helios_worker.domain.models import (
    NO_COMPLETION_REASON,
    NO_OUTCOME_REASON,
    Failed,
    Outcome,
)
from helios_worker.observability.metrics import (
    HANDLER_DURATION_SECONDS,
    JOB_OUTCOMES_TOTAL,
    JOBS_DISPATCHED_TOTAL,
)
from helios_worker.ports.job_handler import HandlerLike, JobHandler
from helios_worker.ports.log_sink import LogSinkPort
from helios_worker.runtime.completion import CompletionHandle, HandlerInvocation

logger = get_logger(__name__)

_DEFAULT_CANCEL_POLL_SECONDS: Final[float] = 0.05


class CancelSignal(Protocol):
    """Host-owned cancellation flag; ``threading.Event`` satisfies it.

    Worker loops use the same signal for shutdown, waiting on it while idle.
    """

    def is_set(self) -> bool: ...

    def wait(self, timeout: float) -> bool: ...


class HandlerRunner:
    """Runs handlers under the completion contract.

    ``dispatch`` always returns exactly one outcome. Handler exceptions are
    captured, a missing terminal call becomes a non-retryable failure, and a
    cancellation signal resolves the invocation as a retryable failure without
    waiting for the handler to return.
    """

    def __init__(
        self,
        log_sink: LogSinkPort,
        *,
        cancel_poll_interval: float = _DEFAULT_CANCEL_POLL_SECONDS,
    ) -> None:
        if cancel_poll_interval <= 0:
            msg = "cancel_poll_interval must be positive"
            raise ValueError(msg)
        self._log_sink = log_sink
        self._cancel_poll_interval = cancel_poll_interval

    def dispatch(
        self,
        context: JobContext,
        handler: HandlerLike,
        *,
        cancel: CancelSignal | None = None,
        handler_name: str | None = None,
    ) -> Outcome:
        name = handler_name or _handler_label(handler)
        invocation = HandlerInvocation(context, self._log_sink)
        completion = CompletionHandle(invocation)

        JOBS_DISPATCHED_TOTAL.labels(handler=name).inc()
        invocation.start()
        logger.info("job_dispatched", job_id=context.job_id, handler=name)

        start_time = time.perf_counter()
        if cancel is None:
            self._invoke(handler, invocation, completion)
        else:
            self._invoke_cancellable(handler, invocation, completion, cancel)
        duration = time.perf_counter() - start_time

        if invocation.resolve(Failed(reason=NO_OUTCOME_REASON, retryable=False)):
            logger.error("handler_left_no_outcome", job_id=context.job_id, handler=name)
        outcome = invocation.outcome
        assert outcome is not None

        HANDLER_DURATION_SECONDS.labels(handler=name).observe(duration)
        JOB_OUTCOMES_TOTAL.labels(handler=name, status=outcome.status).inc()
        logger.info(
            "job_outcome",
            job_id=context.job_id,
            handler=name,
            status=outcome.status,
            reason=getattr(outcome, "reason", None),
            retryable=getattr(outcome, "retryable", None),
            duration_seconds=duration,
        )
        return outcome

    # Internal helpers -------------------------------------------------

    def _invoke_cancellable(
        self,
        handler: HandlerLike,
        invocation: HandlerInvocation,
        completion: CompletionHandle,
        cancel: CancelSignal,
    ) -> None:
        if cancel.is_set():
            self._cancel(invocation)
            return

        finished = threading.Event()

        def _target() -> None:
            try:
                self._invoke(handler, invocation, completion)
            finally:
                finished.set()

        thread = threading.Thread(
            target=_target,
            name=f"helios-handler-{invocation.job_id}",
            daemon=True,
        )
        thread.start()

        while not finished.wait(self._cancel_poll_interval):
            if cancel.is_set():
                self._cancel(invocation)
                return

    def _cancel(self, invocation: HandlerInvocation) -> None:
        if invocation.cancel():
            logger.warning("job_cancelled", job_id=invocation.job_id)
        else:
            logger.info(
                "job_cancel_ignored",
                job_id=invocation.job_id,
                state=str(invocation.state),
            )

    def _invoke(
        self,
        handler: HandlerLike,
        invocation: HandlerInvocation,
        completion: CompletionHandle,
    ) -> None:
        try:
            if isinstance(handler, JobHandler):
                handler.invoke(invocation.context, completion)
            else:
                handler(invocation.context, completion)
        except BaseException as exc:  # noqa: BLE001
            failure = HandlerFailure(invocation.job_id, exc)
            logger.warning(
                "handler_raised",
                job_id=invocation.job_id,
                error_type=type(exc).__name__,
                reason=failure.reason,
                exc_info=True,
            )
            if not invocation.resolve(Failed(reason=failure.reason, retryable=False)):
                logger.warning(
                    "handler_raised_after_outcome",
                    job_id=invocation.job_id,
                    state=str(invocation.state),
                )
            return

        if invocation.resolve(Failed(reason=NO_COMPLETION_REASON, retryable=False)):
            logger.warning("handler_missing_completion", job_id=invocation.job_id)


def _handler_label(handler: HandlerLike) -> str:
    label = getattr(handler, "name", None)
    if isinstance(label, str) and label:
        return label
    if isinstance(handler, JobHandler):
        return type(handler).__name__
    return getattr(handler, "__name__", type(handler).__name__)


__all__ = ["CancelSignal", "HandlerRunner"]
