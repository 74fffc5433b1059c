"""Job records and the registry that maps job ids to them.

A job is one supervised command. Its record outlives the request that
started it: output keeps accumulating after the caller has been told the
command is running in the background, and the session's own exit event
finalizes it.

All times are ``time.monotonic()`` seconds.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from docker_mcp.logger import logger
from docker_mcp.utils import unique_token

if TYPE_CHECKING:
    from docker_mcp.shell.session import FramedShellSession

JobState = Literal["running", "completed"]


def new_job_id() -> str:
    return unique_token("proc")


@dataclass
class JobRecord:
    id: str
    command: str
    rationale: str
    inactivity_budget: float
    started_at: float = field(default_factory=time.monotonic)
    state: JobState = "running"
    ended_at: float | None = None
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    last_output_at: float = 0.0
    final_result: str | None = None
    marker: str = ""
    session: FramedShellSession | None = None

    def __post_init__(self) -> None:
        if not self.last_output_at:
            self.last_output_at = self.started_at

    @property
    def is_completed(self) -> bool:
        return self.state == "completed"

    def append(self, stream: str, text: str, *, now: float | None = None) -> bool:
        """Append a chunk to one stream buffer. Ignored once finalized."""
        if self.is_completed:
            return False
        if stream == "stderr":
            self.stderr += text
        else:
            self.stdout += text
        self.last_output_at = time.monotonic() if now is None else now
        return True

    def finalize(self, exit_code: int, result: str, *, now: float | None = None) -> bool:
        """Move to ``completed`` exactly once. Returns False if already finalized.

        The session is detached and released first, so nothing can append
        to the buffers after the state flips.
        """
        if self.is_completed:
            return False
        session, self.session = self.session, None
        if session is not None:
            session.detach()
        self.ended_at = time.monotonic() if now is None else now
        self.exit_code = exit_code
        self.final_result = result
        self.state = "completed"
        logger.info(
            "Job finalized",
            job=self.id,
            exit_code=exit_code,
            duration_s=round(self.ended_at - self.started_at, 3),
        )
        return True


class JobRegistry:
    """Process-wide id → JobRecord map; the only state shared between callers.

    Completed records older than ``completed_ttl`` seconds (since they
    ended) are evicted whenever a new job is created. Running jobs are
    never evicted. ``completed_ttl=None`` keeps every record.
    """

    def __init__(
        self,
        completed_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._jobs: dict[str, JobRecord] = {}
        self.completed_ttl = completed_ttl
        self._clock = clock

    def create(self, record: JobRecord) -> JobRecord:
        if record.id in self._jobs:
            raise ValueError(f"Duplicate job id: {record.id}")
        self.evict_expired()
        self._jobs[record.id] = record
        return record

    def get(self, job_id: str) -> JobRecord | None:
        return self._jobs.get(job_id)

    def update(self, job_id: str, mutator: Callable[[JobRecord], object]) -> JobRecord | None:
        """Apply ``mutator`` to the record in place; None if the id is unknown."""
        record = self._jobs.get(job_id)
        if record is not None:
            mutator(record)
        return record

    def evict_expired(self) -> int:
        if self.completed_ttl is None:
            return 0
        cutoff = self._clock() - self.completed_ttl
        expired = [
            job_id
            for job_id, r in self._jobs.items()
            if r.is_completed and r.ended_at is not None and r.ended_at <= cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.debug("Evicted completed jobs", count=len(expired))
        return len(expired)
