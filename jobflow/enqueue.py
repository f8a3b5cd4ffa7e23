"""
Enqueue API: the external entry point for new jobs.
"""

import logging
from collections.abc import Sequence
from typing import Protocol

from jobflow.constants import SPAN_ENQUEUE
from jobflow.db.coordinator import ClaimCoordinator
from jobflow.observability.tracing import get_tracer
from jobflow.types.api import EnqueueAck
from jobflow.types.job import TaskCall

logger = logging.getLogger(__name__)

JobSpec = TaskCall | bytes


class WorkSignal(Protocol):
    """Anything that can be told new waiting jobs exist."""

    def notify_new_work(self) -> None: ...


def encode_spec(spec: JobSpec) -> bytes:
    """Turn a job spec into the payload stored with the job."""
    if isinstance(spec, TaskCall):
        return spec.encode()
    if isinstance(spec, (bytes, bytearray, memoryview)):
        return bytes(spec)
    raise TypeError(f"Unsupported job spec: {type(spec).__name__}")


class Enqueuer:
    """
    Inserts waiting jobs and signals the producer.

    Without a signal target (e.g. a submit-only process) the producer of
    another process discovers the jobs on its idle poll.
    """

    def __init__(self, coordinator: ClaimCoordinator, signal: WorkSignal | None = None):
        self._coordinator = coordinator
        self._signal = signal

    async def enqueue(self, spec: JobSpec) -> EnqueueAck:
        """
        Insert one waiting job, then signal the producer.

        Raises:
            StoreUnavailable: If the insert failed; nothing is signalled.
        """
        return await self.enqueue_many([spec])

    async def enqueue_many(self, specs: Sequence[JobSpec]) -> EnqueueAck:
        """
        Insert several waiting jobs in one transaction, with a single signal.

        Raises:
            StoreUnavailable: If the insert failed; nothing is signalled.
        """
        payloads = [encode_spec(spec) for spec in specs]
        if not payloads:
            return EnqueueAck(ids=[], message="Nothing to enqueue")

        with get_tracer().start_as_current_span(SPAN_ENQUEUE) as span:
            span.set_attribute("job_count", len(payloads))
            ids = await self._coordinator.insert(payloads)

        if self._signal is not None:
            self._signal.notify_new_work()

        logger.info("Enqueued jobs", extra={"job_count": len(ids)})
        return EnqueueAck(ids=ids)
