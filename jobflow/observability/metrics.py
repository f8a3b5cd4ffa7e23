"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from jobflow.constants import (
    METRIC_JOB_DURATION,
    METRIC_JOBS_CLAIMED,
    METRIC_JOBS_COMPLETED,
    METRIC_JOBS_ENQUEUED,
    METRIC_OUTSTANDING_DEMAND,
    METRIC_REPORTING_FAILURES,
    METRIC_STALE_RECLAIMED,
    METRIC_STORE_ERRORS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the dispatch pipeline.

    Collects metrics for:
    - Enqueued and claimed jobs
    - Job outcomes and execution duration
    - Producer outstanding demand
    - Store and reporting failures
    - Reconciler sweeps
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs inserted as waiting",
            registry=self._registry,
        )

        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of jobs moved from waiting to running",
            registry=self._registry,
        )

        self.jobs_completed = Counter(
            METRIC_JOBS_COMPLETED,
            "Total number of executions by outcome",
            ["outcome"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["outcome"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )

        self.outstanding_demand = Gauge(
            METRIC_OUTSTANDING_DEMAND,
            "Demand received by the producer and not yet served",
            registry=self._registry,
        )

        self.store_errors = Counter(
            METRIC_STORE_ERRORS,
            "Total number of failed store operations",
            ["operation"],
            registry=self._registry,
        )

        self.reporting_failures = Counter(
            METRIC_REPORTING_FAILURES,
            "Terminal statuses that could not be written",
            ["outcome"],
            registry=self._registry,
        )

        self.stale_reclaimed = Counter(
            METRIC_STALE_RECLAIMED,
            "Running jobs closed by the reconciler",
            registry=self._registry,
        )

    def record_jobs_enqueued(self, count: int = 1) -> None:
        self.jobs_enqueued.inc(count)

    def record_jobs_claimed(self, count: int) -> None:
        self.jobs_claimed.inc(count)

    def record_job_completed(self, outcome: str, duration_seconds: float) -> None:
        """Record a finished execution."""
        self.jobs_completed.labels(outcome=outcome).inc()
        self.job_duration.labels(outcome=outcome).observe(duration_seconds)

    def set_outstanding_demand(self, demand: int) -> None:
        self.outstanding_demand.set(demand)

    def record_store_error(self, operation: str) -> None:
        self.store_errors.labels(operation=operation).inc()

    def record_reporting_failure(self, outcome: str) -> None:
        self.reporting_failures.labels(outcome=outcome).inc()

    def record_stale_reclaimed(self, count: int) -> None:
        self.stale_reclaimed.inc(count)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the process-wide metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the process-wide metrics collector, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
