"""Schedule coroutines without awaiting them."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from anyio import from_thread

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()


def run_in_background(func: Callable[..., Awaitable[Any]], *args: Any) -> None:
    """Schedule ``func(*args)`` on the event loop and return immediately.

    Works both from coroutines (the task is created on the running loop) and
    from worker threads started by anyio, such as synchronous FastAPI routes,
    where the task is created on the loop that owns the thread.
    """

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        from_thread.run_sync(_spawn, func, *args)
    else:
        _spawn(func, *args)


def _spawn(func: Callable[..., Awaitable[Any]], *args: Any) -> None:
    task = asyncio.get_running_loop().create_task(func(*args))
    _background_tasks.add(task)
    task.add_done_callback(_forget_task)


def _forget_task(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task failed: %s", exc, exc_info=exc)


__all__ = ["run_in_background"]
