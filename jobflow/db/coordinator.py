"""
Claim coordinator.

The only path through which the pipeline touches the job store. Every call
runs in its own transaction; store failures surface as StoreUnavailable.
"""

import logging
from collections.abc import Sequence
from datetime import timedelta

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobflow.constants import SPAN_CLAIM, JobStatus, Outcome
from jobflow.db.connection import session_scope
from jobflow.db.models import Job
from jobflow.db.repository import JobRepository
from jobflow.errors import ReportingFailure, StoreUnavailable
from jobflow.observability.metrics import MetricsCollector, get_metrics
from jobflow.observability.tracing import get_tracer
from jobflow.types.job import ClaimedJob, JobRecord

logger = logging.getLogger(__name__)

STORE_ERRORS = (SQLAlchemyError, OSError)


def _to_record(job: Job) -> JobRecord:
    return JobRecord(
        id=job.id,
        payload=bytes(job.payload),
        status=JobStatus(job.status),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


class ClaimCoordinator:
    """
    Transaction boundary around the job store.

    - claim: atomically move up to N waiting jobs to running
    - update_status: move one running job to its terminal status
    - insert: add waiting jobs on behalf of the enqueue API
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metrics: MetricsCollector | None = None,
    ):
        self._session_factory = session_factory
        self._metrics = metrics or get_metrics()

    def _store_error(self, operation: str, error: BaseException) -> StoreUnavailable:
        self._metrics.record_store_error(operation)
        logger.warning(
            f"Store operation failed: {operation}",
            extra={"operation": operation, "error": str(error)},
        )
        return StoreUnavailable(operation, error)

    async def claim(self, limit: int) -> list[ClaimedJob]:
        """
        Claim up to ``limit`` waiting jobs.

        Args:
            limit: Maximum number of jobs to claim. Zero or less claims nothing.

        Returns:
            The claimed jobs in insertion order; possibly empty.

        Raises:
            StoreUnavailable: If the claim transaction failed.
        """
        if limit <= 0:
            return []

        with get_tracer().start_as_current_span(SPAN_CLAIM) as span:
            span.set_attribute("limit", limit)
            try:
                async with session_scope(self._session_factory) as session:
                    jobs = await JobRepository(session).claim_waiting(limit)
            except STORE_ERRORS as e:
                raise self._store_error("claim", e) from e
            span.set_attribute("claimed", len(jobs))

        if jobs:
            self._metrics.record_jobs_claimed(len(jobs))
        return jobs

    async def update_status(self, job_id: int, outcome: Outcome | JobStatus) -> bool:
        """
        Record the terminal status of a running job.

        Args:
            job_id: The job id.
            outcome: The execution outcome, or a terminal status.

        Returns:
            False when the job was not running (already terminal or unknown).

        Raises:
            ReportingFailure: If the update could not be written.
        """
        status = JobStatus(outcome.value)
        try:
            async with session_scope(self._session_factory) as session:
                updated = await JobRepository(session).set_terminal_status(job_id, status)
        except STORE_ERRORS as e:
            self._store_error("update_status", e)
            raise ReportingFailure(job_id, status.value, e) from e

        if not updated:
            logger.debug(
                "Status update rejected, job not running",
                extra={"job_id": job_id, "status": status.value},
            )
        return updated

    async def insert(self, payloads: Sequence[bytes]) -> list[int]:
        """
        Insert waiting jobs.

        Raises:
            StoreUnavailable: If the insert transaction failed.
        """
        try:
            async with session_scope(self._session_factory) as session:
                ids = await JobRepository(session).insert_jobs(payloads)
        except STORE_ERRORS as e:
            raise self._store_error("insert", e) from e

        self._metrics.record_jobs_enqueued(len(ids))
        return ids

    async def reclaim_stale(self, max_age: timedelta) -> list[int]:
        """
        Mark jobs stuck in running for longer than ``max_age`` as timed out.

        Raises:
            StoreUnavailable: If the sweep transaction failed.
        """
        try:
            async with session_scope(self._session_factory) as session:
                ids = await JobRepository(session).reclaim_stale_running(max_age)
        except STORE_ERRORS as e:
            raise self._store_error("reclaim_stale", e) from e

        if ids:
            self._metrics.record_stale_reclaimed(len(ids))
        return ids

    async def get_job(self, job_id: int) -> JobRecord | None:
        try:
            async with session_scope(self._session_factory) as session:
                job = await JobRepository(session).get_job(job_id)
                return _to_record(job) if job is not None else None
        except STORE_ERRORS as e:
            raise self._store_error("get_job", e) from e

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[JobRecord], int]:
        try:
            async with session_scope(self._session_factory) as session:
                jobs, total = await JobRepository(session).list_jobs(
                    status=status, limit=limit, offset=offset
                )
                return [_to_record(job) for job in jobs], total
        except STORE_ERRORS as e:
            raise self._store_error("list_jobs", e) from e

    async def stats(self) -> dict[str, int]:
        try:
            async with session_scope(self._session_factory) as session:
                return await JobRepository(session).get_job_stats()
        except STORE_ERRORS as e:
            raise self._store_error("stats", e) from e

    async def ping(self) -> bool:
        """Check that the store accepts queries."""
        try:
            async with session_scope(self._session_factory) as session:
                await session.execute(text("SELECT 1"))
        except STORE_ERRORS:
            return False
        return True
