"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobflow import __version__
from jobflow.api.routes import health_router, jobs_router
from jobflow.config import Settings, get_settings
from jobflow.db import ClaimCoordinator, Database
from jobflow.enqueue import Enqueuer
from jobflow.errors import StoreUnavailable
from jobflow.observability.logging import setup_logging
from jobflow.observability.metrics import setup_metrics
from jobflow.observability.tracing import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_tracing,
)
from jobflow.types.api import ErrorResponse
from jobflow.worker.main import Pipeline

logger = logging.getLogger(__name__)


def _lifespan_for(settings: Settings, run_pipeline: bool):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Builds the store handles and, when enabled, an in-process pipeline
        whose producer receives the enqueue signals.
        """
        setup_logging(settings)
        metrics = setup_metrics()
        database = Database.from_settings(settings)
        if settings.tracing_enabled:
            setup_tracing(settings)
            instrument_sqlalchemy(database.engine.sync_engine)

        coordinator = ClaimCoordinator(database.session_factory, metrics=metrics)
        pipeline = (
            Pipeline(coordinator, settings=settings, metrics=metrics)
            if run_pipeline
            else None
        )

        app.state.database = database
        app.state.coordinator = coordinator
        app.state.pipeline = pipeline
        app.state.enqueuer = Enqueuer(coordinator, signal=pipeline)

        if pipeline is not None:
            await pipeline.start()
        logger.info("Application started", extra={"pipeline": run_pipeline})

        try:
            yield
        finally:
            if pipeline is not None:
                await pipeline.stop()
            await database.close()
            logger.info("Application shutdown")

    return lifespan


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    """Map store failures to 503."""
    logger.warning(
        "Request failed, store unavailable",
        extra={"path": request.url.path, "operation": exc.operation},
    )
    body = ErrorResponse(error="store_unavailable", detail=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )


def create_app(settings: Settings | None = None, run_pipeline: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings.
        run_pipeline: Run the dispatch pipeline inside the API process.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="jobflow API",
        description="Demand-driven job dispatch backed by PostgreSQL",
        version=__version__,
        lifespan=_lifespan_for(settings, run_pipeline),
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)

    app.include_router(health_router)
    app.include_router(jobs_router)

    if settings.tracing_enabled:
        instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    run()
