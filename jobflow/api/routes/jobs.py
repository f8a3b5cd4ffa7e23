"""
Job submission and inspection routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobflow.api.dependencies import get_coordinator, get_enqueuer, get_pipeline
from jobflow.constants import API_V1_PREFIX, JobStatus
from jobflow.db.coordinator import ClaimCoordinator
from jobflow.enqueue import Enqueuer
from jobflow.errors import ExecutionFailure
from jobflow.types.api import (
    BatchEnqueueRequest,
    EnqueueAck,
    JobListResponse,
    JobResponse,
    StatsResponse,
)
from jobflow.types.job import JobRecord, TaskCall
from jobflow.worker.main import Pipeline

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


def _job_to_response(job: JobRecord) -> JobResponse:
    """Convert a job record to a JobResponse."""
    try:
        task = TaskCall.decode(job.payload)
    except ExecutionFailure:
        task = None

    return JobResponse(
        id=job.id,
        status=job.status,
        task=task,
        payload_size=len(job.payload),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


@router.post(
    "",
    response_model=EnqueueAck,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a job",
    description="Insert a waiting job and signal the producer.",
)
async def enqueue_job(
    request: TaskCall,
    enqueuer: Enqueuer = Depends(get_enqueuer),
) -> EnqueueAck:
    """
    Submit one job.

    Args:
        request: Task name and arguments.
        enqueuer: Enqueue API handle.

    Returns:
        EnqueueAck with the new job id.
    """
    return await enqueuer.enqueue(request)


@router.post(
    "/batch",
    response_model=EnqueueAck,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit several jobs",
    description="Insert waiting jobs in one transaction with a single producer signal.",
)
async def enqueue_jobs(
    request: BatchEnqueueRequest,
    enqueuer: Enqueuer = Depends(get_enqueuer),
) -> EnqueueAck:
    return await enqueuer.enqueue_many(request.jobs)


@router.get(
    "/stats/summary",
    response_model=StatsResponse,
    summary="Get job statistics",
    description="Job counts by status, plus producer counters when a pipeline runs in-process.",
)
async def get_job_stats(
    coordinator: ClaimCoordinator = Depends(get_coordinator),
    pipeline: Pipeline | None = Depends(get_pipeline),
) -> StatsResponse:
    stats = await coordinator.stats()
    return StatsResponse(
        stats=stats,
        pipeline=pipeline.stats() if pipeline is not None else None,
    )


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job details",
    description="Get detailed information about a specific job.",
)
async def get_job(
    job_id: int,
    coordinator: ClaimCoordinator = Depends(get_coordinator),
) -> JobResponse:
    """
    Get job details by ID.

    Raises:
        HTTPException: If the job does not exist.
    """
    job = await coordinator.get_job(job_id)

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    return _job_to_response(job)


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="List jobs, newest first, with optional status filtering.",
)
async def list_jobs(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    status: JobStatus | None = Query(default=None),
    coordinator: ClaimCoordinator = Depends(get_coordinator),
) -> JobListResponse:
    """
    List jobs.

    Args:
        page: Page number (1-indexed).
        page_size: Number of items per page.
        status: Optional status filter.
        coordinator: Claim coordinator.

    Returns:
        JobListResponse with paginated jobs.
    """
    offset = (page - 1) * page_size

    jobs, total = await coordinator.list_jobs(
        status=status,
        limit=page_size,
        offset=offset,
    )

    return JobListResponse(
        jobs=[_job_to_response(job) for job in jobs],
        total=total,
        page=page,
        page_size=page_size,
        has_next=(page * page_size) < total,
    )
