"""
Demand-driven producer.

The producer is the only owner of the outstanding-demand counter. Demand
and new-work signals arrive as messages on its inbox and are handled one
loop iteration at a time, so no other task ever reads or writes its state.
"""

import asyncio
import logging

from jobflow.db.coordinator import ClaimCoordinator
from jobflow.errors import StoreUnavailable
from jobflow.observability.metrics import MetricsCollector, get_metrics
from jobflow.pipeline.dispatcher import Dispatcher
from jobflow.types.events import Demand, NewWork, ProducerMessage, Revoke, Shutdown

logger = logging.getLogger(__name__)


class Producer:
    """
    Claims waiting jobs in response to consumer demand.

    Flow control: the producer claims at most its outstanding demand, and
    decrements that demand by exactly the number of jobs the store returned.
    Revoked demand is subtracted without going below zero, because part of
    it may already have been claimed.
    Unmet demand waits for a new-work signal (or the idle poll) to retry.
    """

    def __init__(
        self,
        coordinator: ClaimCoordinator,
        dispatcher: Dispatcher,
        poll_interval: float = 0.0,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the producer and bind it to its dispatcher.

        Args:
            coordinator: Claim coordinator for the job store.
            dispatcher: Routes claimed jobs to consumers.
            poll_interval: Seconds of inbox silence after which outstanding
                demand is retried. Zero waits for signals only.
            metrics: Metrics collector. Uses the process-wide one by default.
        """
        self._coordinator = coordinator
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval
        self._metrics = metrics or get_metrics()

        self._inbox: asyncio.Queue[ProducerMessage] = asyncio.Queue()
        self._outstanding = 0
        self._demand_received = 0
        self._demand_served = 0
        self._work_signalled = False
        self._running = False

        dispatcher.bind(self.demand, self.revoke)

    @property
    def outstanding_demand(self) -> int:
        return self._outstanding

    @property
    def demand_received(self) -> int:
        """Total demand received since start."""
        return self._demand_received

    @property
    def demand_served(self) -> int:
        """Total jobs emitted since start; never exceeds demand_received."""
        return self._demand_served

    @property
    def is_running(self) -> bool:
        return self._running

    def demand(self, count: int) -> None:
        """Queue a demand increase. Called by the dispatcher."""
        self._inbox.put_nowait(Demand(count))

    def revoke(self, count: int) -> None:
        """Queue a demand decrease for a consumer that left."""
        self._inbox.put_nowait(Revoke(count))

    def notify_new_work(self) -> None:
        """
        Signal that waiting jobs may exist.

        Safe to call redundantly: signals are coalesced, and a claim never
        returns more than the store actually holds.
        """
        if self._work_signalled:
            return
        self._work_signalled = True
        self._inbox.put_nowait(NewWork())

    def stop(self) -> None:
        """Stop accepting demand once the messages ahead are handled."""
        self._inbox.put_nowait(Shutdown())

    async def run(self) -> None:
        """Process inbox messages until a shutdown message arrives."""
        self._running = True
        logger.info("Producer started", extra={"poll_interval": self._poll_interval})

        try:
            while True:
                message = await self._next_message()
                if not self._apply(message):
                    break

                # Coalesce everything already queued into a single claim
                stopping = False
                while not self._inbox.empty():
                    if not self._apply(self._inbox.get_nowait()):
                        stopping = True
                        break
                if stopping:
                    break

                try:
                    await self._fulfil()
                except Exception as e:
                    logger.exception(
                        f"Error in producer loop: {e}",
                        extra={"outstanding_demand": self._outstanding},
                    )
        finally:
            self._running = False
            logger.info(
                "Producer stopped",
                extra={
                    "outstanding_demand": self._outstanding,
                    "demand_received": self._demand_received,
                    "demand_served": self._demand_served,
                },
            )

    async def _next_message(self) -> ProducerMessage | None:
        """Wait for a message; None means the poll interval elapsed."""
        if self._poll_interval <= 0:
            return await self._inbox.get()
        try:
            return await asyncio.wait_for(self._inbox.get(), timeout=self._poll_interval)
        except TimeoutError:
            return None

    def _apply(self, message: ProducerMessage | None) -> bool:
        """Fold a message into producer state. Returns False on shutdown."""
        if isinstance(message, Shutdown):
            return False
        if isinstance(message, Demand):
            self._demand_received += message.count
            self._outstanding += message.count
        elif isinstance(message, Revoke):
            self._outstanding = max(0, self._outstanding - message.count)
        elif isinstance(message, NewWork):
            self._work_signalled = False
        return True

    async def _fulfil(self) -> None:
        """Claim as much of the outstanding demand as the store can satisfy."""
        if self._outstanding == 0:
            self._metrics.set_outstanding_demand(0)
            return

        try:
            jobs = await self._coordinator.claim(self._outstanding)
        except StoreUnavailable as e:
            logger.warning(
                "Claim failed, demand stays outstanding",
                extra={"outstanding_demand": self._outstanding, "error": str(e)},
            )
            return

        if jobs:
            self._outstanding -= len(jobs)
            self._demand_served += len(jobs)
            self._dispatcher.dispatch(jobs)
            logger.debug(
                f"Emitted {len(jobs)} jobs",
                extra={"job_count": len(jobs), "outstanding_demand": self._outstanding},
            )

        self._metrics.set_outstanding_demand(self._outstanding)
