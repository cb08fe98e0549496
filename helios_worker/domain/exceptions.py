"""Custom exception hierarchy for the Helios worker.

Following error taxonomy: retryable, non-retryable.
"""


class HeliosWorkerError(Exception):
    """Base exception for all worker errors."""

    pass


class RetryableError(HeliosWorkerError):
    """Errors that can be retried (temporary storage or transport failures)."""

    pass


class NonRetryableError(HeliosWorkerError):
    """Errors that should not be retried (malformed input, contract breaches)."""

    pass


class StorageError(RetryableError):
    """Persisting a job outcome failed."""

    pass


class MalformedJobError(NonRetryableError):
    """Claimed job record cannot be turned into a JobContext."""

    def __init__(self, job_id: str, detail: str) -> None:
        """Initialize with the offending job id and a short description."""
        self.job_id = job_id
        self.detail = detail
        super().__init__(f"Malformed job {job_id!r}: {detail}")


class HandlerNotFoundError(NonRetryableError, KeyError):
    """No handler is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No handler registered for {name!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class HandlerFailure(NonRetryableError):
    """Unhandled exception captured from a handler invocation."""

    def __init__(self, job_id: str, cause: BaseException) -> None:
        self.job_id = job_id
        self.cause = cause
        self.reason = _describe(cause)
        super().__init__(self.reason)


def _describe(cause: BaseException) -> str:
    """Message of ``cause``, or its class name when empty or unprintable."""
    try:
        message = str(cause)
    except Exception:  # noqa: BLE001
        message = ""
    return message or type(cause).__name__


class ProtocolViolation(NonRetryableError):
    """Handler broke the completion contract (extra terminal call)."""

    def __init__(self, job_id: str, detail: str) -> None:
        self.job_id = job_id
        self.detail = detail
        super().__init__(f"Protocol violation for job {job_id!r}: {detail}")
