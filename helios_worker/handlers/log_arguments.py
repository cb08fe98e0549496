"""Reference handler: log every job argument, then report completion."""

from __future__ import annotations

from typing import Final

from helios_worker.domain.job_context import JobContext
from helios_worker.runtime.completion import CompletionHandle

LOG_ARGUMENTS_HANDLER_NAME: Final[str] = "log_arguments"


class LogArgumentsHandler:
    name = LOG_ARGUMENTS_HANDLER_NAME

    def invoke(self, context: JobContext, completion: CompletionHandle) -> None:
        for arg_name, value in context.all_arguments():
            completion.log(f"Argname: {arg_name} Value: {value}")

        completion.complete()


__all__ = ["LOG_ARGUMENTS_HANDLER_NAME", "LogArgumentsHandler"]
