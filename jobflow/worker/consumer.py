"""
Consumer: executes dispatched jobs under a time budget and reports outcomes.
"""

import logging
import time
from dataclasses import dataclass

from jobflow.constants import SPAN_EXECUTE_JOB, SPAN_REPORT_STATUS, Outcome
from jobflow.db.coordinator import ClaimCoordinator
from jobflow.errors import ExecutionTimeout, StoreUnavailable
from jobflow.observability.logging import bind_context
from jobflow.observability.metrics import MetricsCollector, get_metrics
from jobflow.observability.tracing import get_tracer
from jobflow.pipeline.dispatcher import Dispatcher
from jobflow.types.events import JobBatch, Shutdown
from jobflow.types.job import ClaimedJob, ExecutionReport, TaskCall
from jobflow.worker.executor import TaskExecutor, run_with_deadline

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConsumerStats:
    """Running counters for one consumer."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    unreported: int = 0

    def record(self, report: ExecutionReport) -> None:
        self.processed += 1
        if report.outcome is Outcome.SUCCESS:
            self.succeeded += 1
        elif report.outcome is Outcome.ERROR:
            self.failed += 1
        else:
            self.timed_out += 1
        if not report.reported:
            self.unreported += 1


class Consumer:
    """
    Terminal stage of the pipeline.

    Lifecycle of each received job:
    1. Decode the payload into a task call
    2. Race the task against the time budget
    3. Map the result to success, error or timeout
    4. Report the terminal status through the claim coordinator

    Jobs in a batch run one after another in the order received; a failing
    job never affects its siblings. After a whole batch the consumer asks the
    dispatcher for as many jobs as it just finished.
    """

    def __init__(
        self,
        consumer_id: str,
        dispatcher: Dispatcher,
        coordinator: ClaimCoordinator,
        executor: TaskExecutor,
        timeout_seconds: float,
        max_demand: int,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the consumer.

        Args:
            consumer_id: Unique consumer identifier within the pipeline.
            dispatcher: Dispatcher to subscribe to.
            coordinator: Claim coordinator used to report statuses.
            executor: Runs task calls.
            timeout_seconds: Per-job time budget.
            max_demand: Capacity advertised when subscribing.
        """
        self.consumer_id = consumer_id
        self.timeout_seconds = timeout_seconds
        self.max_demand = max_demand
        self.stats = ConsumerStats()

        self._dispatcher = dispatcher
        self._coordinator = coordinator
        self._executor = executor
        self._metrics = metrics or get_metrics()

    async def run(self) -> None:
        """Subscribe and process batches until told to shut down."""
        bind_context(consumer_id=self.consumer_id)
        inbox = self._dispatcher.subscribe(self.consumer_id)
        self._dispatcher.ask(self.consumer_id, self.max_demand)

        try:
            while True:
                message = await inbox.get()
                if isinstance(message, Shutdown):
                    break
                await self.handle_batch(message)
                self._dispatcher.ask(self.consumer_id, len(message))
        finally:
            self._dispatcher.cancel(self.consumer_id)
            logger.info(
                "Consumer stopped",
                extra={"consumer_id": self.consumer_id, "processed": self.stats.processed},
            )

    async def handle_batch(self, batch: JobBatch) -> list[ExecutionReport]:
        """Process every job of a batch, in order."""
        return [await self.process(job) for job in batch.jobs]

    async def process(self, job: ClaimedJob) -> ExecutionReport:
        """Execute one job and report its terminal status."""
        started = time.monotonic()
        outcome, error = await self.execute(job)
        duration = time.monotonic() - started

        reported = await self._report(job, outcome)

        report = ExecutionReport(
            job_id=job.id,
            consumer_id=self.consumer_id,
            outcome=outcome,
            duration_seconds=duration,
            error=error,
            reported=reported,
        )
        self.stats.record(report)
        self._metrics.record_job_completed(outcome.value, duration)
        return report

    async def execute(self, job: ClaimedJob) -> tuple[Outcome, str | None]:
        """
        Run a job under the time budget.

        Returns:
            The outcome and, for error and timeout, a description.
        """
        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", job.id)
            span.set_attribute("consumer_id", self.consumer_id)

            try:
                call = TaskCall.decode(job.payload)
                span.set_attribute("task", call.task)
                await run_with_deadline(self._executor.execute(call), self.timeout_seconds)
            except ExecutionTimeout as e:
                logger.warning(
                    "Job timed out",
                    extra={"job_id": job.id, "timeout_seconds": self.timeout_seconds},
                )
                span.set_attribute("outcome", Outcome.TIMEOUT.value)
                return Outcome.TIMEOUT, str(e)
            except Exception as e:
                logger.warning(
                    "Job failed",
                    extra={"job_id": job.id, "error": str(e), "error_type": type(e).__name__},
                )
                span.set_attribute("outcome", Outcome.ERROR.value)
                return Outcome.ERROR, f"{type(e).__name__}: {e}"

            span.set_attribute("outcome", Outcome.SUCCESS.value)
            logger.debug("Job succeeded", extra={"job_id": job.id})
            return Outcome.SUCCESS, None

    async def _report(self, job: ClaimedJob, outcome: Outcome) -> bool:
        """
        Write the terminal status. Failures are contained here.

        A job whose status cannot be written stays running until the
        reconciler closes it.
        """
        with get_tracer().start_as_current_span(SPAN_REPORT_STATUS) as span:
            span.set_attribute("job_id", job.id)
            span.set_attribute("outcome", outcome.value)
            try:
                return await self._coordinator.update_status(job.id, outcome)
            except StoreUnavailable as e:
                # ReportingFailure included
                self._metrics.record_reporting_failure(outcome.value)
                logger.error(
                    "Could not report job status, job left running",
                    extra={
                        "job_id": job.id,
                        "outcome": outcome.value,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
            return False
