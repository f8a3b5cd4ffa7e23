"""
Task registry and built-in task implementations.

A job payload names a task and its arguments; the executor looks the task
up here. Tasks may run more than once (broadcast dispatch delivers every
job to every consumer), so they should be idempotent or tolerate
duplicate side effects.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from typing import Any

import httpx

from jobflow.errors import ExecutionFailure

logger = logging.getLogger(__name__)

# Coroutine functions are awaited; plain functions run in a worker thread
TaskHandler = Callable[..., Any]


class TaskRegistry:
    """Maps task names to handler callables."""

    def __init__(self) -> None:
        self._handlers: dict[str, TaskHandler] = {}

    def register(self, name: str) -> Callable[[TaskHandler], TaskHandler]:
        """
        Decorator to register a task handler.

        Args:
            name: The task name payloads refer to.

        Returns:
            Decorator function.

        Example:
            @register_task("send_email")
            async def send_email(to: str, subject: str) -> dict:
                ...
        """
        def decorator(handler: TaskHandler) -> TaskHandler:
            self._handlers[name] = handler
            logger.debug(f"Registered task: {name}")
            return handler
        return decorator

    def get(self, name: str) -> TaskHandler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        """List all registered task names."""
        return sorted(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers


default_registry = TaskRegistry()
register_task = default_registry.register


# ============================================================================
# Built-in tasks
# ============================================================================


@register_task("echo")
async def echo(*args: Any, **kwargs: Any) -> dict[str, Any]:
    """Return the arguments unchanged."""
    return {"args": list(args), "kwargs": kwargs}


@register_task("sleep")
async def sleep(seconds: float = 1.0) -> dict[str, Any]:
    """
    Sleep for ``seconds``. Useful to exercise the time budget.
    """
    await asyncio.sleep(seconds)
    return {"slept_for": seconds}


@register_task("fail")
async def fail(message: str = "Intentional failure") -> None:
    """Always fail."""
    raise ExecutionFailure(message)


@register_task("random_failure")
async def random_failure(failure_rate: float = 0.5) -> dict[str, Any]:
    """
    Fail with probability ``failure_rate`` (0.0 to 1.0).
    """
    if random.random() < failure_rate:
        raise ExecutionFailure(f"Random failure (rate {failure_rate})")
    return {"message": "Succeeded this time!"}


@register_task("http_request")
async def http_request(
    url: str,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    body: Any = None,
    timeout: float = 30.0,
) -> dict[str, Any]:
    """
    Make an HTTP request; non-2xx responses fail the job.

    The job's own time budget still applies on top of ``timeout``.
    """
    method = method.upper()
    async with httpx.AsyncClient() as client:
        response = await client.request(
            method=method,
            url=url,
            headers=headers or {},
            json=body if method in ("POST", "PUT", "PATCH") else None,
            timeout=timeout,
        )

    if not response.is_success:
        raise ExecutionFailure(f"HTTP {response.status_code} from {method} {url}")

    return {
        "status_code": response.status_code,
        "body": response.text[:1000],
    }
