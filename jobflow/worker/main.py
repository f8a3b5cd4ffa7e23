"""
Pipeline wiring and the worker process entry point.

The pipeline builds one dispatcher, one producer and a pool of consumers,
passing each its collaborators explicitly, and runs them as asyncio tasks.
"""

import asyncio
import logging
import signal

from jobflow.config import Settings, get_settings
from jobflow.db import ClaimCoordinator, Database
from jobflow.observability.logging import setup_logging
from jobflow.observability.metrics import MetricsCollector, get_metrics
from jobflow.observability.tracing import instrument_sqlalchemy, setup_tracing
from jobflow.pipeline import Producer, build_dispatcher
from jobflow.reconciler import Reconciler
from jobflow.types.api import PipelineStats
from jobflow.worker.consumer import Consumer
from jobflow.worker.executor import TaskExecutor

logger = logging.getLogger(__name__)


class Pipeline:
    """
    One producer, one dispatcher and a pool of consumers.

    Shutdown order:
    1. The producer stops taking demand
    2. The reconciler stops
    3. The dispatcher tells every consumer to shut down after the batches
       already in its inbox, so in-flight jobs finish or time out normally
    """

    def __init__(
        self,
        coordinator: ClaimCoordinator,
        executor: TaskExecutor | None = None,
        settings: Settings | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Build the pipeline.

        Args:
            coordinator: Claim coordinator shared by producer and consumers.
            executor: Runs task calls. Defaults to the built-in task registry.
            settings: Pipeline settings.
            metrics: Metrics collector. Uses the process-wide one by default.
        """
        settings = settings or get_settings()
        metrics = metrics or get_metrics()
        executor = executor or TaskExecutor()

        self.settings = settings
        self.dispatcher = build_dispatcher(settings.dispatch_mode)
        self.producer = Producer(
            coordinator,
            self.dispatcher,
            poll_interval=settings.producer_poll_interval_seconds,
            metrics=metrics,
        )
        self.consumers = [
            Consumer(
                consumer_id=f"consumer-{index}",
                dispatcher=self.dispatcher,
                coordinator=coordinator,
                executor=executor,
                timeout_seconds=settings.job_timeout_seconds,
                max_demand=settings.consumer_max_demand,
                metrics=metrics,
            )
            for index in range(settings.effective_pool_size)
        ]
        self.reconciler = (
            Reconciler(
                coordinator,
                interval_seconds=settings.reconcile_interval_seconds,
                max_age_seconds=settings.reconcile_max_age_seconds,
            )
            if settings.reconcile_enabled
            else None
        )

        self._producer_task: asyncio.Task | None = None
        self._consumer_tasks: list[asyncio.Task] = []
        self._reconciler_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._producer_task is not None and not self._producer_task.done()

    def notify_new_work(self) -> None:
        """Forward a new-work signal to the producer."""
        self.producer.notify_new_work()

    async def start(self) -> None:
        """Start the producer, consumers and reconciler as tasks."""
        if self._producer_task is not None:
            raise RuntimeError("Pipeline already started")

        logger.info(
            "Pipeline starting",
            extra={
                "consumers": len(self.consumers),
                "dispatch_mode": self.dispatcher.mode.value,
                "timeout_ms": self.settings.job_timeout_ms,
            },
        )

        self._producer_task = asyncio.create_task(self.producer.run(), name="producer")
        self._consumer_tasks = [
            asyncio.create_task(consumer.run(), name=consumer.consumer_id)
            for consumer in self.consumers
        ]
        if self.reconciler is not None:
            self._reconciler_task = asyncio.create_task(
                self.reconciler.start(), name="reconciler"
            )

        # Pick up jobs left waiting before this process started
        self.producer.notify_new_work()

    async def stop(self) -> None:
        """Stop gracefully, letting consumers drain what they already hold."""
        if self._producer_task is None:
            return

        logger.info("Pipeline stopping")
        self.producer.stop()
        await self._producer_task

        if self._reconciler_task is not None and self.reconciler is not None:
            await self.reconciler.stop()
            await self._reconciler_task

        self.dispatcher.close()
        results = await asyncio.gather(*self._consumer_tasks, return_exceptions=True)
        for consumer, result in zip(self.consumers, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Consumer exited with error",
                    extra={"consumer_id": consumer.consumer_id, "error": repr(result)},
                )

        logger.info("Pipeline stopped", extra=self.stats().model_dump())

    def stats(self) -> PipelineStats:
        return PipelineStats(
            outstanding_demand=self.producer.outstanding_demand,
            demand_received=self.producer.demand_received,
            demand_served=self.producer.demand_served,
            consumers=self.dispatcher.consumer_count,
            dispatch_mode=self.dispatcher.mode.value,
        )

    async def __aenter__(self) -> "Pipeline":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()
    setup_logging(settings)
    database = Database.from_settings(settings)
    if settings.tracing_enabled:
        setup_tracing(settings)
        instrument_sqlalchemy(database.engine.sync_engine)

    pipeline = Pipeline(ClaimCoordinator(database.session_factory), settings=settings)
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        await pipeline.start()
        await stop_requested.wait()
    finally:
        await pipeline.stop()
        await database.close()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
