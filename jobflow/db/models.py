"""
SQLAlchemy database models.
Defines the jobs table.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Enum,
    Identity,
    Index,
    LargeBinary,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jobflow.constants import JobStatus


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing a unit of work in the queue.

    This is the authoritative source of truth for job state. Status moves
    waiting -> running -> success/error/timeout and never back; every update
    statement is guarded by the status it expects to find.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True,
    )

    # Encoded task call, opaque to the store
    payload: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status", create_constraint=True, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.WAITING,
        server_default=JobStatus.WAITING.value,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        # Claim path: oldest waiting rows first
        Index(
            "ix_jobs_waiting",
            "id",
            postgresql_where=(Column("status") == JobStatus.WAITING.value),
        ),
        # Reconciler path: running rows by age
        Index(
            "ix_jobs_running_updated_at",
            "updated_at",
            postgresql_where=(Column("status") == JobStatus.RUNNING.value),
        ),
    )

    def __repr__(self) -> str:
        return f"Job(id={self.id}, status={self.status}, payload={len(self.payload)}B)"
