"""
API request and response type definitions.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from jobflow.constants import MAX_BATCH_ENQUEUE, JobStatus
from jobflow.types.job import TaskCall


class EnqueueAck(BaseModel):
    """Acknowledgement returned by the enqueue API."""

    ids: list[int]
    status: JobStatus = JobStatus.WAITING
    message: str = "Jobs enqueued"


class BatchEnqueueRequest(BaseModel):
    """Request body for submitting several jobs at once."""

    jobs: list[TaskCall] = Field(..., min_length=1, max_length=MAX_BATCH_ENQUEUE)


class JobResponse(BaseModel):
    """Full job details response."""

    id: int
    status: JobStatus
    task: TaskCall | None = Field(
        default=None, description="Decoded payload, when it is a task call"
    )
    payload_size: int
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    jobs: list[JobResponse]
    total: int
    page: int
    page_size: int
    has_next: bool


class PipelineStats(BaseModel):
    """Flow-control counters of the in-process producer."""

    outstanding_demand: int
    demand_received: int
    demand_served: int
    consumers: int
    dispatch_mode: str


class StatsResponse(BaseModel):
    """Job counts by status plus pipeline counters."""

    stats: dict[str, int]
    pipeline: PipelineStats | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
