"""
Pipeline module.
Contains the demand-driven producer and the dispatch strategies.
"""

from jobflow.pipeline.dispatcher import (
    BroadcastDispatcher,
    Dispatcher,
    PartitionDispatcher,
    build_dispatcher,
)
from jobflow.pipeline.producer import Producer

__all__ = [
    "Producer",
    "Dispatcher",
    "PartitionDispatcher",
    "BroadcastDispatcher",
    "build_dispatcher",
]
