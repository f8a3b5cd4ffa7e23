"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - WAITING -> RUNNING (claimed by the producer)
    - RUNNING -> SUCCESS (task returned within its budget)
    - RUNNING -> ERROR (task raised within its budget)
    - RUNNING -> TIMEOUT (budget elapsed, or stranded and reconciled)
    """

    WAITING = "waiting"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class Outcome(StrEnum):
    """Result of a single execution attempt."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def status(self) -> JobStatus:
        """The terminal job status recording this outcome."""
        return JobStatus(self.value)


class DispatchMode(StrEnum):
    """How produced jobs are routed across consumers."""

    PARTITIONED = "partitioned"
    BROADCAST = "broadcast"


TERMINAL_STATUSES: frozenset[JobStatus] = frozenset(
    {JobStatus.SUCCESS, JobStatus.ERROR, JobStatus.TIMEOUT}
)

# Default values
DEFAULT_JOB_TIMEOUT_MS = 1000
DEFAULT_CONSUMER_MAX_DEMAND = 10
DEFAULT_RECONCILE_MAX_AGE_SECONDS = 300.0
CONSUMERS_PER_CPU = 12

# API constants
API_V1_PREFIX = "/v1"
MAX_BATCH_ENQUEUE = 1000

# Metrics names
METRIC_JOBS_ENQUEUED = "jobflow_jobs_enqueued_total"
METRIC_JOBS_CLAIMED = "jobflow_jobs_claimed_total"
METRIC_JOBS_COMPLETED = "jobflow_jobs_completed_total"
METRIC_JOB_DURATION = "jobflow_job_duration_seconds"
METRIC_OUTSTANDING_DEMAND = "jobflow_outstanding_demand"
METRIC_STORE_ERRORS = "jobflow_store_errors_total"
METRIC_REPORTING_FAILURES = "jobflow_reporting_failures_total"
METRIC_STALE_RECLAIMED = "jobflow_stale_jobs_reclaimed_total"

# Trace span names
SPAN_ENQUEUE = "enqueue_jobs"
SPAN_CLAIM = "claim_jobs"
SPAN_EXECUTE_JOB = "execute_job"
SPAN_REPORT_STATUS = "report_status"
