from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import pytest

from helios_worker.adapters.log_sink import InMemoryLogSink
from helios_worker.domain.exceptions import ProtocolViolation
from helios_worker.domain.job_context import JobContext
from helios_worker.domain.models import (
    CANCELLED_REASON,
    Completed,
    Failed,
    InvocationState,
)
from helios_worker.runtime.completion import CompletionHandle, HandlerInvocation


@pytest.fixture
def invocation(
    log_sink: InMemoryLogSink, make_context: Callable[..., JobContext]
) -> HandlerInvocation:
    return HandlerInvocation(make_context(job_id="job-9"), log_sink)


def test_state_machine_pending_running_completed(invocation: HandlerInvocation) -> None:
    assert invocation.state is InvocationState.PENDING
    assert invocation.outcome is None

    invocation.start()
    assert invocation.state is InvocationState.RUNNING

    CompletionHandle(invocation).complete()
    assert invocation.state is InvocationState.COMPLETED
    assert invocation.state.is_terminal
    assert invocation.outcome == Completed()


def test_fail_moves_to_failed(invocation: HandlerInvocation) -> None:
    invocation.start()

    CompletionHandle(invocation).fail("disk full", True)

    assert invocation.state is InvocationState.FAILED
    assert invocation.outcome == Failed(reason="disk full", retryable=True)


def test_terminal_state_is_never_left(invocation: HandlerInvocation) -> None:
    invocation.start()
    handle = CompletionHandle(invocation)

    handle.fail("first", False)
    handle.complete()
    handle.fail("second", True)

    assert invocation.state is InvocationState.FAILED
    assert invocation.outcome == Failed(reason="first", retryable=False)
    violations = invocation.violations
    assert len(violations) == 2
    assert all(isinstance(v, ProtocolViolation) for v in violations)
    assert "complete() ignored" in violations[0].detail


def test_cannot_resolve_or_restart_outside_running(
    invocation: HandlerInvocation,
) -> None:
    with pytest.raises(RuntimeError, match="not started"):
        invocation.resolve(Completed())
    with pytest.raises(RuntimeError, match="not started"):
        invocation.cancel()

    invocation.start()
    with pytest.raises(RuntimeError, match="already started"):
        invocation.start()


def test_cancel_fixes_retryable_failure(invocation: HandlerInvocation) -> None:
    invocation.start()
    handle = CompletionHandle(invocation)

    assert invocation.cancel() is True
    assert handle.cancelled is True
    handle.complete()

    assert invocation.outcome == Failed(reason=CANCELLED_REASON, retryable=True)
    assert len(invocation.violations) == 1


def test_cancel_after_outcome_is_noop(invocation: HandlerInvocation) -> None:
    invocation.start()
    CompletionHandle(invocation).complete()

    assert invocation.cancel() is False
    assert invocation.outcome == Completed()
    assert invocation.violations == []


def test_implicit_resolution_is_not_a_violation(invocation: HandlerInvocation) -> None:
    invocation.start()
    CompletionHandle(invocation).complete()

    assert invocation.resolve(Failed(reason="implicit")) is False
    assert invocation.violations == []


def test_concurrent_terminal_calls_have_single_winner(
    invocation: HandlerInvocation,
) -> None:
    invocation.start()
    handle = CompletionHandle(invocation)

    def _call(index: int) -> None:
        if index % 2:
            handle.fail(f"fail-{index}", False)
        else:
            handle.complete({"index": index})

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(_call, range(32)))

    assert invocation.outcome is not None
    assert len(invocation.violations) == 31


def test_log_forwards_tagged_lines(
    invocation: HandlerInvocation, log_sink: InMemoryLogSink
) -> None:
    handle = CompletionHandle(invocation)

    handle.log("one")
    handle.log(2)  # type: ignore[arg-type]

    assert handle.job_id == "job-9"
    assert log_sink.lines_for("job-9") == ["one", "2"]
