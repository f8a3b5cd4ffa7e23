"""
Dispatchers route claimed jobs from the producer to subscribed consumers.

Consumers subscribe, advertise capacity with ``ask``, and receive
``JobBatch`` messages on their inbox. The dispatcher forwards demand to the
producer it is bound to, and the producer hands claimed jobs back through
``dispatch``. Demand held by a consumer that leaves is revoked at the
producer. All methods are synchronous so they run atomically on the
event loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from jobflow.constants import DispatchMode
from jobflow.types.events import ConsumerMessage, Demand, JobBatch, Shutdown
from jobflow.types.job import ClaimedJob

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    """A consumer's inbox and the capacity it has advertised but not received."""

    consumer_id: str
    inbox: asyncio.Queue[ConsumerMessage]
    demand: int = 0
    buffer: deque[ClaimedJob] = field(default_factory=deque)

    def deliver(self, jobs: Sequence[ClaimedJob]) -> None:
        if jobs:
            self.inbox.put_nowait(JobBatch(tuple(jobs)))

    def flush(self) -> int:
        """Deliver buffered jobs up to the advertised demand."""
        take = min(len(self.buffer), self.demand)
        if take:
            self.deliver([self.buffer.popleft() for _ in range(take)])
            self.demand -= take
        return take


class Dispatcher(ABC):
    """Base class for routing strategies."""

    mode: DispatchMode

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._ask_upstream: Callable[[int], None] | None = None
        self._revoke_upstream: Callable[[int], None] | None = None
        self._closed = False

    def bind(
        self,
        ask_upstream: Callable[[int], None],
        revoke_upstream: Callable[[int], None],
    ) -> None:
        """Attach the producer's demand and revoke entry points."""
        self._ask_upstream = ask_upstream
        self._revoke_upstream = revoke_upstream

    @property
    def consumer_count(self) -> int:
        return len(self._subscriptions)

    @property
    def total_demand(self) -> int:
        """Capacity advertised by live consumers and not yet filled."""
        return sum(sub.demand for sub in self._subscriptions.values())

    def subscribe(self, consumer_id: str) -> asyncio.Queue[ConsumerMessage]:
        """
        Register a consumer and return its inbox.

        Subscribing again under the same id replaces the old subscription,
        which is cancelled first. A restarted consumer therefore starts with
        fresh capacity.
        """
        if self._closed:
            raise RuntimeError("Dispatcher is closed")

        if consumer_id in self._subscriptions:
            logger.info("Consumer resubscribing", extra={"consumer_id": consumer_id})
            self.cancel(consumer_id)

        subscription = Subscription(consumer_id=consumer_id, inbox=asyncio.Queue())
        self._subscriptions[consumer_id] = subscription
        self._on_subscribe(subscription)
        return subscription.inbox

    def cancel(self, consumer_id: str) -> None:
        """
        Remove a consumer. Its unfilled demand is revoked.

        Jobs already delivered to its inbox are not re-sent.
        """
        subscription = self._subscriptions.pop(consumer_id, None)
        if subscription is None:
            return
        logger.info(
            "Consumer unsubscribed",
            extra={"consumer_id": consumer_id, "revoked_demand": subscription.demand},
        )
        self._on_cancel(subscription)

    def ask(self, consumer_id: str, count: int) -> None:
        """
        Advertise capacity for ``count`` more jobs.

        Raises:
            InvalidMessage: If ``count`` is not a positive integer.
            KeyError: If the consumer is not subscribed.
        """
        Demand(count)
        subscription = self._subscriptions.get(consumer_id)
        if subscription is None:
            raise KeyError(f"Consumer {consumer_id!r} is not subscribed")
        self._on_ask(subscription, count)

    def close(self) -> None:
        """Send a shutdown message to every subscriber and refuse new ones."""
        self._closed = True
        for subscription in self._subscriptions.values():
            subscription.inbox.put_nowait(Shutdown())

    def _forward(self, count: int) -> None:
        if count <= 0:
            return
        if self._ask_upstream is None:
            raise RuntimeError("Dispatcher is not bound to a producer")
        self._ask_upstream(count)

    def _revoke(self, count: int) -> None:
        if count <= 0:
            return
        if self._revoke_upstream is None:
            raise RuntimeError("Dispatcher is not bound to a producer")
        self._revoke_upstream(count)

    def _on_subscribe(self, subscription: Subscription) -> None:
        pass

    @abstractmethod
    def _on_cancel(self, subscription: Subscription) -> None: ...

    @abstractmethod
    def _on_ask(self, subscription: Subscription, count: int) -> None: ...

    @abstractmethod
    def dispatch(self, jobs: Iterable[ClaimedJob]) -> None:
        """Route jobs emitted by the producer."""


class PartitionDispatcher(Dispatcher):
    """
    Sends each job to exactly one consumer.

    Jobs go to the consumer with the most unfilled capacity, ties broken
    round-robin. Consumer demand is forwarded upstream one-for-one, and a
    cancelled consumer's unfilled demand is revoked upstream the same way.

    Jobs the producer claimed before a revoke reached it have no consumer
    capacity left; they are buffered and served to the next ask.
    """

    mode = DispatchMode.PARTITIONED

    def __init__(self) -> None:
        super().__init__()
        self._buffer: deque[ClaimedJob] = deque()
        self._cursor = 0

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def _on_cancel(self, subscription: Subscription) -> None:
        self._revoke(subscription.demand)
        subscription.demand = 0

    def _on_ask(self, subscription: Subscription, count: int) -> None:
        served = min(len(self._buffer), count)
        if served:
            subscription.deliver([self._buffer.popleft() for _ in range(served)])

        remaining = count - served
        subscription.demand += remaining
        self._forward(remaining)

    def _pick(self) -> Subscription | None:
        subscriptions = list(self._subscriptions.values())
        if not subscriptions:
            return None
        start = self._cursor % len(subscriptions)
        rotated = subscriptions[start:] + subscriptions[:start]
        best = max(rotated, key=lambda sub: sub.demand)
        if best.demand == 0:
            return None
        self._cursor = start + 1
        return best

    def dispatch(self, jobs: Iterable[ClaimedJob]) -> None:
        pending = deque(jobs)
        while pending:
            subscription = self._pick()
            if subscription is None:
                break
            take = min(subscription.demand, len(pending))
            subscription.deliver([pending.popleft() for _ in range(take)])
            subscription.demand -= take

        if pending:
            # Claimed before the producer saw a revoke
            self._buffer.extend(pending)
            logger.info(
                "Buffered jobs with no consumer capacity",
                extra={"job_count": len(pending), "buffered": len(self._buffer)},
            )


class BroadcastDispatcher(Dispatcher):
    """
    Sends every job to every consumer.

    The producer is asked for the smallest demand across consumers, so the
    slowest consumer bounds throughput. Each consumer receives the same job
    ids; only the first terminal report per job is accepted by the store.
    Jobs beyond a consumer's current capacity wait in its own buffer.

    Jobs claimed while nobody is subscribed are held as orphans. Every
    consumer that subscribes before the next live dispatch gets a copy,
    matching what it would have received had it been subscribed. The
    orphans are dropped once a dispatch reaches live subscribers.
    """

    mode = DispatchMode.BROADCAST

    def __init__(self) -> None:
        super().__init__()
        self._upstream = 0
        self._orphaned: deque[ClaimedJob] = deque()

    def _on_subscribe(self, subscription: Subscription) -> None:
        if self._orphaned:
            subscription.buffer.extend(self._orphaned)

    def _on_cancel(self, subscription: Subscription) -> None:
        if not self._subscriptions:
            self._revoke(self._upstream)
            self._upstream = 0
            return
        self._ask_floor()

    def _on_ask(self, subscription: Subscription, count: int) -> None:
        subscription.demand += count
        subscription.flush()
        self._ask_floor()

    def _ask_floor(self) -> None:
        if not self._subscriptions:
            return
        floor = min(sub.demand for sub in self._subscriptions.values())
        if floor > self._upstream:
            self._forward(floor - self._upstream)
            self._upstream = floor

    def dispatch(self, jobs: Iterable[ClaimedJob]) -> None:
        jobs = list(jobs)
        if not jobs:
            return
        self._upstream = max(0, self._upstream - len(jobs))

        if not self._subscriptions:
            self._orphaned.extend(jobs)
            logger.warning(
                "No consumers subscribed, holding jobs",
                extra={"job_count": len(jobs)},
            )
            return

        for subscription in self._subscriptions.values():
            subscription.buffer.extend(jobs)
            subscription.flush()
        self._orphaned.clear()


def build_dispatcher(mode: DispatchMode | str) -> Dispatcher:
    """Create the dispatcher for a configured mode."""
    mode = DispatchMode(mode)
    if mode is DispatchMode.BROADCAST:
        return BroadcastDispatcher()
    return PartitionDispatcher()
