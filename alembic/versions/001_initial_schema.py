"""Initial schema with jobs table

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JOB_STATUSES = ("waiting", "running", "success", "error", "timeout")


def upgrade() -> None:
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE job_status AS ENUM ('waiting', 'running', 'success', 'error', 'timeout');
        EXCEPTION
            WHEN duplicate_object THEN null;
        END $$;
    """)

    op.create_table(
        "jobs",
        sa.Column("id", sa.BigInteger, sa.Identity(always=False), nullable=False),
        sa.Column("payload", sa.LargeBinary, nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(*JOB_STATUSES, name="job_status", create_type=False),
            nullable=False,
            server_default="waiting",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Claim path: oldest waiting rows first
    op.execute("""
        CREATE INDEX ix_jobs_waiting
        ON jobs (id)
        WHERE status = 'waiting'
    """)

    # Reconciler path: running rows by age
    op.execute("""
        CREATE INDEX ix_jobs_running_updated_at
        ON jobs (updated_at)
        WHERE status = 'running'
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_jobs_running_updated_at")
    op.execute("DROP INDEX IF EXISTS ix_jobs_waiting")
    op.drop_table("jobs")
    op.execute("DROP TYPE IF EXISTS job_status")
