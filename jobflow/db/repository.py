"""
Job repository for database operations.
Implements the core data access patterns for job management.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobflow.constants import JobStatus
from jobflow.db.models import Job
from jobflow.types.job import ClaimedJob

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for job database operations.

    Implements atomic operations for:
    - Job insertion
    - Claiming with FOR UPDATE SKIP LOCKED
    - Guarded status transitions
    - Stale running job reclamation

    The repository never commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def insert_jobs(self, payloads: Sequence[bytes]) -> list[int]:
        """
        Insert waiting jobs.

        Args:
            payloads: Encoded payloads, one per job.

        Returns:
            The assigned ids, in the order of ``payloads``.
        """
        if not payloads:
            return []

        stmt = insert(Job).returning(Job.id, sort_by_parameter_order=True)
        result = await self._session.execute(
            stmt,
            [{"payload": payload, "status": JobStatus.WAITING} for payload in payloads],
        )
        ids = list(result.scalars().all())

        logger.debug("Inserted jobs", extra={"job_count": len(ids)})
        return ids

    async def get_job(self, job_id: int) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            The Job or None if not found.
        """
        stmt = select(Job).where(Job.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[Job], int]:
        """
        List jobs with optional filtering, newest first.

        Args:
            status: Optional status filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count).
        """
        filters = []
        if status is not None:
            filters.append(Job.status == status)

        count_stmt = select(func.count()).select_from(Job).where(*filters)
        count_result = await self._session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(Job)
            .where(*filters)
            .order_by(Job.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        jobs = result.scalars().all()

        return jobs, total

    async def claim_waiting(self, limit: int) -> list[ClaimedJob]:
        """
        Claim up to ``limit`` waiting jobs using FOR UPDATE SKIP LOCKED.

        This is the critical path for job distribution. Rows locked by a
        concurrent claim are skipped rather than waited on, so overlapping
        claims partition the waiting set instead of blocking or duplicating.

        Args:
            limit: Maximum number of jobs to claim.

        Returns:
            Claimed jobs in insertion (id) order, already marked running.
        """
        if limit <= 0:
            return []

        claimable = (
            select(Job.id)
            .where(Job.status == JobStatus.WAITING)
            .order_by(Job.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(Job)
            .where(Job.id.in_(claimable.scalar_subquery()))
            .values(status=JobStatus.RUNNING, updated_at=func.now())
            .returning(Job.id, Job.payload)
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        jobs = sorted(
            (ClaimedJob(id=row.id, payload=bytes(row.payload)) for row in result),
            key=lambda job: job.id,
        )

        if jobs:
            logger.debug(
                f"Claimed {len(jobs)} jobs",
                extra={"job_count": len(jobs), "limit": limit},
            )

        return jobs

    async def set_terminal_status(self, job_id: int, status: JobStatus) -> bool:
        """
        Move a running job to a terminal status.

        Args:
            job_id: The job id.
            status: One of success, error, timeout.

        Returns:
            True if the job was running and is now terminal, False otherwise.
        """
        if not status.is_terminal:
            raise ValueError(f"Not a terminal status: {status}")

        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == JobStatus.RUNNING)
            .values(status=status, updated_at=func.now())
            .returning(Job.id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def reclaim_stale_running(
        self,
        max_age: timedelta,
        status: JobStatus = JobStatus.TIMEOUT,
    ) -> list[int]:
        """
        Close out jobs left running longer than ``max_age``.

        Rows are locked with SKIP LOCKED so a sweep never waits on a consumer
        that is writing the same row.

        Returns:
            The ids of the jobs that were closed.
        """
        if not status.is_terminal:
            raise ValueError(f"Not a terminal status: {status}")

        cutoff = datetime.now(timezone.utc) - max_age
        stale = (
            select(Job.id)
            .where(Job.status == JobStatus.RUNNING, Job.updated_at < cutoff)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(Job)
            .where(Job.id.in_(stale.scalar_subquery()))
            .values(status=status, updated_at=func.now())
            .returning(Job.id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        ids = sorted(result.scalars().all())

        if ids:
            logger.info(
                f"Reclaimed {len(ids)} stale running jobs",
                extra={"job_ids": ids, "status": status.value},
            )

        return ids

    async def get_job_stats(self) -> dict[str, int]:
        """
        Get job counts by status.

        Returns:
            Dictionary of status -> count, with zero for absent statuses.
        """
        stmt = select(Job.status, func.count()).group_by(Job.status)
        result = await self._session.execute(stmt)

        stats = {status.value: 0 for status in JobStatus}
        for status, count in result.all():
            stats[JobStatus(status).value] = count
        return stats
