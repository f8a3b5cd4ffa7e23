"""
Database module.
Contains database connection, models, repository and the claim coordinator.
"""

from jobflow.db.connection import (
    Database,
    create_engine,
    create_session_factory,
    session_scope,
)
from jobflow.db.coordinator import ClaimCoordinator
from jobflow.db.models import Base, Job

__all__ = [
    "Database",
    "create_engine",
    "create_session_factory",
    "session_scope",
    "ClaimCoordinator",
    "Job",
    "Base",
]
