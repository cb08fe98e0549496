"""Plugin interface implemented by job handlers."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from helios_worker.domain.job_context import JobContext
    from helios_worker.runtime.completion import CompletionHandle


@runtime_checkable
class JobHandler(Protocol):
    """Pluggable logic executed once per claimed job.

    A handler reads its inputs from the context, may log through the
    completion handle, and must finish with exactly one call to
    ``completion.complete()`` or ``completion.fail()``.
    """

    def invoke(self, context: JobContext, completion: CompletionHandle) -> None:
        """Run the job."""


HandlerCallable = Callable[["JobContext", "CompletionHandle"], None]
HandlerLike = JobHandler | HandlerCallable
HandlerFactory = Callable[[], HandlerLike]


__all__ = ["HandlerCallable", "HandlerFactory", "HandlerLike", "JobHandler"]
