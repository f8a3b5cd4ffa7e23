"""
Type definitions for the dispatch pipeline.
Contains job, message and API types, grouped by module.
"""

from jobflow.types.api import (
    BatchEnqueueRequest,
    EnqueueAck,
    ErrorResponse,
    HealthResponse,
    JobListResponse,
    JobResponse,
    PipelineStats,
    StatsResponse,
)
from jobflow.types.events import (
    ConsumerMessage,
    Demand,
    JobBatch,
    NewWork,
    ProducerMessage,
    Revoke,
    Shutdown,
)
from jobflow.types.job import (
    ClaimedJob,
    ExecutionReport,
    JobRecord,
    TaskCall,
)

__all__ = [
    # API types
    "EnqueueAck",
    "BatchEnqueueRequest",
    "JobResponse",
    "JobListResponse",
    "PipelineStats",
    "StatsResponse",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "TaskCall",
    "ClaimedJob",
    "JobRecord",
    "ExecutionReport",
    # Message types
    "Demand",
    "Revoke",
    "NewWork",
    "Shutdown",
    "JobBatch",
    "ProducerMessage",
    "ConsumerMessage",
]
