"""Shared helpers."""

from __future__ import annotations

import asyncio
import secrets
import time
from collections.abc import Callable, Coroutine
from typing import Any

from docker_mcp.logger import logger


def unique_token(prefix: str) -> str:
    """``<prefix>_<epoch millis>_<random>`` — timestamped so ids never repeat."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def create_background_task(
    coro: Coroutine[Any, Any, Any],
    *,
    name: str | None = None,
) -> asyncio.Task[Any]:
    """Create an asyncio task that logs exceptions instead of swallowing them.

    A drop-in replacement for ``asyncio.create_task`` for fire-and-forget
    work (stream pumps, exit watchers) where we don't await the result
    but still want failures to appear in logs.
    """
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_log_task_exception)
    return task


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    """Callback attached to background tasks — logs unhandled exceptions."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        # Pass the exception to exc_info so structlog renders the full
        # traceback.  logger.exception() won't work here because we're
        # in a done-callback, not an except handler.
        logger.error(
            "Background task failed",
            task_name=task.get_name(),
            exc_info=exc,
        )


def guarded(callback: Callable[..., Any], *, what: str) -> Callable[..., None]:
    """Wrap an event-loop callback so its errors are logged, never raised.

    Timer and listener callbacks run straight from the loop; an exception
    escaping one of them would only be reported by the loop's default
    handler and leave the caller's wait unresolved.
    """

    def _run(*args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("Callback failed", callback=what)

    return _run
