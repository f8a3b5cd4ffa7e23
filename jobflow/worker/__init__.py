"""
Worker module.
Contains the consumer, task executor, task registry and pipeline wiring.
"""

from jobflow.worker.consumer import Consumer
from jobflow.worker.executor import TaskExecutor, run_with_deadline
from jobflow.worker.handlers import TaskRegistry, default_registry, register_task

__all__ = [
    "Consumer",
    "TaskExecutor",
    "run_with_deadline",
    "TaskRegistry",
    "default_registry",
    "register_task",
]
