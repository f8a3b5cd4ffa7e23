"""
FastAPI dependencies resolving the handles stored on the application state.
"""

from fastapi import HTTPException, Request, status

from jobflow.db.coordinator import ClaimCoordinator
from jobflow.enqueue import Enqueuer
from jobflow.worker.main import Pipeline


def get_coordinator(request: Request) -> ClaimCoordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store not initialized",
        )
    return coordinator


def get_enqueuer(request: Request) -> Enqueuer:
    enqueuer = getattr(request.app.state, "enqueuer", None)
    if enqueuer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enqueue API not initialized",
        )
    return enqueuer


def get_pipeline(request: Request) -> Pipeline | None:
    """The in-process pipeline, if this process runs one."""
    return getattr(request.app.state, "pipeline", None)
