"""
Reconciler for jobs stranded in the running state.

A consumer that cannot write a terminal status (or that dies mid-batch)
leaves its job running. The reconciler periodically closes out running
jobs that have not been touched for longer than a maximum age, marking them
timed out. The maximum age must exceed the time a consumer may hold a
full batch, ``consumer_max_demand * job_timeout``.
"""

import asyncio
import logging
import signal
from datetime import timedelta

from jobflow.config import get_settings
from jobflow.db import ClaimCoordinator, Database
from jobflow.errors import StoreUnavailable
from jobflow.observability.logging import setup_logging

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Periodic sweep over stale running jobs.

    Runs every ``interval_seconds`` and marks running jobs older than
    ``max_age_seconds`` as timeout. Store failures skip one sweep.
    """

    def __init__(
        self,
        coordinator: ClaimCoordinator,
        interval_seconds: float | None = None,
        max_age_seconds: float | None = None,
    ):
        """
        Initialize the reconciler.

        Args:
            coordinator: Claim coordinator for the job store.
            interval_seconds: Seconds between sweeps.
            max_age_seconds: Age after which a running job is considered stranded.
        """
        if interval_seconds is None or max_age_seconds is None:
            settings = get_settings()
            if interval_seconds is None:
                interval_seconds = settings.reconcile_interval_seconds
            if max_age_seconds is None:
                max_age_seconds = settings.reconcile_max_age_seconds
        self.interval = interval_seconds
        self.max_age = timedelta(seconds=max_age_seconds)
        self._coordinator = coordinator
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Start the sweep loop."""
        logger.info(
            f"Reconciler starting with interval {self.interval}s",
            extra={"max_age_seconds": self.max_age.total_seconds()},
        )
        self._stopped.clear()

        while not self._stopped.is_set():
            try:
                reclaimed = await self.run_once()
                if reclaimed:
                    logger.info(f"Reclaimed {len(reclaimed)} stranded jobs")
            except StoreUnavailable as e:
                logger.warning(f"Reconciler sweep skipped: {e}")
            except Exception as e:
                logger.exception(f"Error in reconciler loop: {e}")

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except TimeoutError:
                pass

        logger.info("Reconciler stopped")

    async def stop(self) -> None:
        """Stop the reconciler."""
        logger.info("Reconciler stopping")
        self._stopped.set()

    async def run_once(self) -> list[int]:
        """
        Run one sweep (for testing or cron-style execution).

        Returns:
            Ids of the jobs that were closed.
        """
        return await self._coordinator.reclaim_stale(self.max_age)


async def run_async() -> None:
    """Run the reconciler as a standalone process."""
    settings = get_settings()
    setup_logging(settings)
    database = Database.from_settings(settings)

    reconciler = Reconciler(ClaimCoordinator(database.session_factory))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(reconciler.stop())
        )

    try:
        await reconciler.start()
    finally:
        await database.close()


def run() -> None:
    """Run the reconciler."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
