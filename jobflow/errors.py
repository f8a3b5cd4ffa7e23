"""
Exception hierarchy for the dispatch pipeline.

Store-facing failures are raised by the claim coordinator and contained by
the producer and consumers; execution failures are contained per job.
"""


class JobflowError(Exception):
    """Base class for all jobflow errors."""


class StoreUnavailable(JobflowError):
    """A transaction or connection to the job store failed."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Store unavailable during {operation}{detail}")


class ReportingFailure(StoreUnavailable):
    """
    Writing a terminal status failed after the outcome was known.

    The job stays ``running`` in the store until the reconciler closes it.
    """

    def __init__(self, job_id: int, status: str, cause: BaseException | None = None):
        self.job_id = job_id
        self.status = status
        super().__init__("update_status", cause)


class ExecutionFailure(JobflowError):
    """The task raised, returned a failure, or could not be resolved."""


class ExecutionTimeout(JobflowError):
    """The task did not finish within its time budget."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Task exceeded its {timeout_seconds:.3f}s budget")


class InvalidMessage(JobflowError, ValueError):
    """A pipeline message was built with invalid contents."""
