"""
Message types exchanged between the producer, dispatcher and consumers.

Each message kind is a closed, immutable variant validated when it is built.
"""

from dataclasses import dataclass

from jobflow.errors import InvalidMessage
from jobflow.types.job import ClaimedJob


def _check_count(count: object, kind: str) -> None:
    if not isinstance(count, int) or isinstance(count, bool):
        raise InvalidMessage(f"{kind} count must be an int, got {count!r}")
    if count <= 0:
        raise InvalidMessage(f"{kind} count must be positive, got {count}")


@dataclass(frozen=True, slots=True)
class Demand:
    """Consumers are ready for ``count`` more jobs."""

    count: int

    def __post_init__(self) -> None:
        _check_count(self.count, "Demand")


@dataclass(frozen=True, slots=True)
class Revoke:
    """A consumer left; ``count`` slots of its demand are no longer wanted."""

    count: int

    def __post_init__(self) -> None:
        _check_count(self.count, "Revoke")


@dataclass(frozen=True, slots=True)
class NewWork:
    """New waiting jobs may exist in the store."""


@dataclass(frozen=True, slots=True)
class Shutdown:
    """Stop after the messages already queued ahead of this one."""


@dataclass(frozen=True, slots=True)
class JobBatch:
    """A batch of claimed jobs routed to one consumer."""

    jobs: tuple[ClaimedJob, ...]

    def __post_init__(self) -> None:
        if not self.jobs:
            raise InvalidMessage("A job batch cannot be empty")
        for job in self.jobs:
            if not isinstance(job, ClaimedJob):
                raise InvalidMessage(f"Not a claimed job: {job!r}")

    def __len__(self) -> int:
        return len(self.jobs)


ProducerMessage = Demand | Revoke | NewWork | Shutdown
ConsumerMessage = JobBatch | Shutdown
