"""
Unit tests for task execution and the time-budget race.
"""

import asyncio
import time

import pytest

from jobflow.errors import ExecutionFailure, ExecutionTimeout
from jobflow.types.job import TaskCall
from jobflow.worker.executor import TaskExecutor, run_with_deadline
from jobflow.worker.handlers import TaskRegistry


class TestRunWithDeadline:
    """Tests for run_with_deadline."""

    async def test_returns_result_within_budget(self):
        async def quick() -> str:
            return "done"

        assert await run_with_deadline(quick(), timeout=1.0) == "done"

    async def test_propagates_task_error(self):
        async def broken() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await run_with_deadline(broken(), timeout=1.0)

    async def test_deadline_wins(self):
        """The caller gets control back at the deadline, not when the task ends."""
        cancelled = asyncio.Event()

        async def slow() -> None:
            try:
                await asyncio.sleep(2.0)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        started = time.monotonic()
        with pytest.raises(ExecutionTimeout) as exc_info:
            await run_with_deadline(slow(), timeout=0.1)
        elapsed = time.monotonic() - started

        assert exc_info.value.timeout_seconds == 0.1
        assert elapsed < 0.5
        await asyncio.wait_for(cancelled.wait(), timeout=1.0)

    async def test_late_failure_is_discarded(self):
        """A task that fails after its deadline does not surface anywhere."""
        finished = asyncio.Event()

        async def stubborn() -> None:
            try:
                await asyncio.sleep(1.0)
            except asyncio.CancelledError:
                await asyncio.sleep(0.01)
                finished.set()
                raise ValueError("too late")

        with pytest.raises(ExecutionTimeout):
            await run_with_deadline(stubborn(), timeout=0.05)

        await asyncio.wait_for(finished.wait(), timeout=1.0)


class TestTaskExecutor:
    """Tests for TaskExecutor."""

    @pytest.fixture
    def registry(self) -> TaskRegistry:
        registry = TaskRegistry()

        @registry.register("add")
        async def add(a: int, b: int) -> int:
            return a + b

        @registry.register("blocking_upper")
        def blocking_upper(text: str) -> str:
            return text.upper()

        return registry

    @pytest.fixture
    def executor(self, registry: TaskRegistry) -> TaskExecutor:
        return TaskExecutor(registry)

    async def test_coroutine_handler(self, executor):
        result = await executor.execute(TaskCall(task="add", args=[2, 3]))
        assert result == 5

    async def test_plain_function_runs_in_thread(self, executor):
        result = await executor.execute(TaskCall(task="blocking_upper", kwargs={"text": "hi"}))
        assert result == "HI"

    async def test_unknown_task(self, executor):
        with pytest.raises(ExecutionFailure, match="No task registered"):
            await executor.execute(TaskCall(task="missing"))

    async def test_bad_arguments_raise(self, executor):
        with pytest.raises(TypeError):
            await executor.execute(TaskCall(task="add", args=[1]))

    def test_default_registry(self):
        assert "echo" in TaskExecutor().registry
