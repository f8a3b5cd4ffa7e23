"""
Task execution and the time-budget race.
"""

import asyncio
import inspect
from collections.abc import Awaitable
from typing import Any, TypeVar

from jobflow.errors import ExecutionFailure, ExecutionTimeout
from jobflow.types.job import TaskCall
from jobflow.worker.handlers import TaskRegistry, default_registry

T = TypeVar("T")


class TaskExecutor:
    """
    Runs task calls against a registry of handlers.

    Coroutine handlers run on the event loop and stop at their next await
    when cancelled. Plain functions run via ``asyncio.to_thread``; cancelling
    those abandons the result but cannot stop the thread.
    """

    def __init__(self, registry: TaskRegistry | None = None):
        self._registry = registry or default_registry

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    async def execute(self, call: TaskCall) -> Any:
        """
        Run one task call.

        Raises:
            ExecutionFailure: If no handler is registered under the task name.
            Exception: Whatever the handler raises.
        """
        handler = self._registry.get(call.task)
        if handler is None:
            raise ExecutionFailure(f"No task registered under {call.task!r}")

        if inspect.iscoroutinefunction(handler):
            return await handler(*call.args, **call.kwargs)
        return await asyncio.to_thread(handler, *call.args, **call.kwargs)


def _discard_result(task: asyncio.Task) -> None:
    if not task.cancelled():
        # Retrieve it so the loop does not log "exception was never retrieved"
        task.exception()


async def run_with_deadline(work: Awaitable[T], timeout: float) -> T:
    """
    Race ``work`` against a deadline of ``timeout`` seconds.

    Whichever finishes first decides the result. When the deadline wins the
    work is cancelled without waiting for it to wind down, and its eventual
    result is discarded.

    Raises:
        ExecutionTimeout: If the deadline elapsed first.
        Exception: Whatever ``work`` raised, if it finished first.
    """
    task = asyncio.ensure_future(work)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    task.cancel()
    task.add_done_callback(_discard_result)
    raise ExecutionTimeout(timeout)
