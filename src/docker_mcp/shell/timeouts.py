"""Adaptive timeouts — when to stop waiting on a command that hasn't finished.

Two shapes of the same rule:

``AdaptiveTimeout``
    Event-driven, for the caller that started the command. A sliding
    inactivity window re-armed on every output chunk plus an absolute
    safety ceiling that output never extends.

``poll_until_settled``
    Polling, for a later status query. It reads ``last_output_at`` off the
    job record at a fixed interval instead of subscribing to the session,
    since the query may come from a different caller than the one that
    started the job.

Either way the wait resolves exactly once, to one of ``WaitOutcome``.
Timeouts only end the wait; they never touch the job itself.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Literal, Protocol

from docker_mcp.utils import guarded

WaitOutcome = Literal["completed", "inactive", "safety"]


class AdaptiveTimeout:
    """One in-flight wait: inactivity timer + safety timer + completion."""

    def __init__(self, inactivity_seconds: float, ceiling_seconds: float) -> None:
        self._loop = asyncio.get_running_loop()
        self.inactivity_seconds = inactivity_seconds
        self.ceiling_seconds = ceiling_seconds
        self.started_at = self._loop.time()
        self.last_activity = self.started_at
        self._outcome: asyncio.Future[WaitOutcome] = self._loop.create_future()
        self._inactivity_handle: asyncio.TimerHandle | None = None
        self._arm_inactivity()
        self._safety_handle: asyncio.TimerHandle | None = self._loop.call_later(
            ceiling_seconds, guarded(self._resolve, what="safety-timeout"), "safety"
        )

    @property
    def resolved(self) -> bool:
        return self._outcome.done()

    def touch(self) -> None:
        """Output observed — slide the inactivity window. The ceiling stays put."""
        if self.resolved:
            return
        self.last_activity = self._loop.time()
        self._arm_inactivity()

    def complete(self) -> None:
        """Completion observed — the only non-speculative resolution."""
        self._resolve("completed")

    def inactive_for(self) -> float:
        return self._loop.time() - self.last_activity

    def elapsed(self) -> float:
        return self._loop.time() - self.started_at

    async def wait(self) -> WaitOutcome:
        try:
            return await asyncio.shield(self._outcome)
        except asyncio.CancelledError:
            self.cancel()
            raise

    def cancel(self) -> None:
        """Abandon the wait (caller went away); timers are dropped."""
        self._cancel_timers()
        if not self._outcome.done():
            self._outcome.cancel()

    def _arm_inactivity(self) -> None:
        if self._inactivity_handle is not None:
            self._inactivity_handle.cancel()
        self._inactivity_handle = self._loop.call_later(
            self.inactivity_seconds,
            guarded(self._resolve, what="inactivity-timeout"),
            "inactive",
        )

    def _resolve(self, outcome: WaitOutcome) -> None:
        if self._outcome.done():
            return
        self._cancel_timers()
        self._outcome.set_result(outcome)

    def _cancel_timers(self) -> None:
        for handle in (self._inactivity_handle, self._safety_handle):
            if handle is not None:
                handle.cancel()
        self._inactivity_handle = None
        self._safety_handle = None


class _Pollable(Protocol):
    @property
    def is_completed(self) -> bool: ...

    last_output_at: float
    inactivity_budget: float


async def poll_until_settled(
    job: _Pollable,
    *,
    ceiling_seconds: float,
    interval_seconds: float,
    clock: Callable[[], float] = time.monotonic,
) -> tuple[WaitOutcome, float]:
    """Poll ``job`` until it completes, goes quiet, or the ceiling passes.

    Returns the outcome and how long the wait lasted. ``job.last_output_at``
    must come from the same clock.
    """
    wait_started = clock()
    while True:
        now = clock()
        waited = now - wait_started
        if job.is_completed:
            return "completed", waited
        if waited >= ceiling_seconds:
            return "safety", waited
        if now - job.last_output_at >= job.inactivity_budget:
            return "inactive", waited
        await asyncio.sleep(interval_seconds)
