"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from jobflow.constants import JobStatus, Outcome
from jobflow.errors import ExecutionFailure


class TaskCall(BaseModel):
    """
    Executable reference and arguments carried in a job payload.

    Encoded as UTF-8 JSON in the ``payload`` column.
    """

    task: str = Field(..., min_length=1, description="Registered task name")
    args: list[Any] = Field(default_factory=list)
    kwargs: dict[str, Any] = Field(default_factory=dict)

    def encode(self) -> bytes:
        """Serialize into the opaque payload bytes stored with the job."""
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def decode(cls, payload: bytes) -> "TaskCall":
        """
        Deserialize a job payload.

        Raises:
            ExecutionFailure: If the payload is not a valid task call.
        """
        try:
            return cls.model_validate_json(payload)
        except ValidationError as e:
            raise ExecutionFailure(f"Undecodable job payload: {e}") from e


@dataclass(frozen=True, slots=True)
class ClaimedJob:
    """A job handed out by the claim coordinator, already marked running."""

    id: int
    payload: bytes


@dataclass(frozen=True, slots=True)
class JobRecord:
    """Read-only snapshot of a stored job."""

    id: int
    payload: bytes
    status: JobStatus
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class ExecutionReport:
    """
    Outcome of one execution attempt, as seen by a consumer.

    ``reported`` is False when the terminal status could not be written,
    or when the store rejected it because the job was no longer running.
    """

    job_id: int
    consumer_id: str
    outcome: Outcome
    duration_seconds: float
    error: str | None = None
    reported: bool = False
