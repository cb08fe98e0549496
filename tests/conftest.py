"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from helios_worker.adapters.job_queue_inmemory import InMemoryJobQueue
from helios_worker.adapters.log_sink import InMemoryLogSink
from helios_worker.domain.job_context import JobContext
from helios_worker.domain.models import RawJob
from helios_worker.handlers import default_registry
from helios_worker.handlers.registry import HandlerRegistry
from helios_worker.runtime.handler_runner import HandlerRunner


@pytest.fixture
def log_sink() -> InMemoryLogSink:
    return InMemoryLogSink()


@pytest.fixture
def runner(log_sink: InMemoryLogSink) -> HandlerRunner:
    return HandlerRunner(log_sink, cancel_poll_interval=0.01)


@pytest.fixture
def job_queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def registry() -> HandlerRegistry:
    return default_registry()


@pytest.fixture
def make_context() -> Callable[..., JobContext]:
    """Build a JobContext from plain arguments."""

    def _make(
        job_id: str = "job-1",
        arguments: Any = None,
        config: dict[str, Any] | None = None,
    ) -> JobContext:
        raw_job = RawJob(
            job_id=job_id,
            handler="log_arguments",
            arguments=arguments if arguments is not None else {},
        )
        return JobContext.from_raw(raw_job, config or {})

    return _make
