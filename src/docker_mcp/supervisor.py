"""Supervision engine — execute, check status, send input.

Execute opens a fresh shell session per command, registers a job, submits
the framed command, and races three things: the marker showing up, the
inactivity window closing, and the safety ceiling. Whichever comes first
decides what the caller gets back. The job itself is never stopped by a
timeout; it keeps running and keeps filling its record until the marker
appears or the shell exits.

Two paths through execute():
  Fast path: marker arrives before either timer — final result + exit code
  Background path: a timer fires first — snapshot + job id; the session's
    listeners stay attached and finalize the record later
"""

from __future__ import annotations

import time

from docker_mcp.config import get_settings
from docker_mcp.errors import JobAlreadyCompleted, JobNotFound, SpawnError, StdinUnavailable
from docker_mcp.jobs import JobRecord, JobRegistry, new_job_id
from docker_mcp.logger import logger
from docker_mcp.shell.framing import (
    Completion,
    CompletionDetector,
    StderrFence,
    exit_code_from_returncode,
    format_result,
    format_streams,
    make_marker,
    strip_marker,
)
from docker_mcp.shell.session import FramedShellSession, Stream
from docker_mcp.shell.timeouts import AdaptiveTimeout, WaitOutcome, poll_until_settled

COMMAND_MARKER_PREFIX = "MCP"


class Supervisor:
    """Owns the job registry and the per-command sessions."""

    def __init__(self, registry: JobRegistry | None = None) -> None:
        s = get_settings()
        self.container = s.container.name
        self.shell = s.container.shell
        self.default_inactivity = s.supervisor.default_inactivity_seconds
        self.safety_timeout = s.supervisor.safety_timeout_seconds
        self.poll_interval = s.supervisor.poll_interval_seconds
        self.registry = registry or JobRegistry(
            completed_ttl=s.supervisor.completed_job_ttl_seconds
        )

    # -- execute ---------------------------------------------------------------

    async def execute(
        self,
        command: str,
        rationale: str = "",
        inactivity_budget: float | None = None,
    ) -> str:
        budget = inactivity_budget if inactivity_budget and inactivity_budget > 0 else None
        budget = budget or self.default_inactivity
        marker = make_marker(COMMAND_MARKER_PREFIX)
        record = self.registry.create(
            JobRecord(
                id=new_job_id(),
                command=command,
                rationale=rationale,
                inactivity_budget=budget,
                marker=marker,
            )
        )
        logger.info("Executing command", job=record.id, command=command, rationale=rationale)

        session = FramedShellSession(self.container, self.shell, label=record.id)
        try:
            await session.open()
        except SpawnError as exc:
            logger.error("Failed to spawn shell", job=record.id, err=str(exc))
            result = f"Error spawning process: {exc}\nExit code: 1"
            record.finalize(1, result)
            return result
        record.session = session

        detector = CompletionDetector(marker)
        fence = StderrFence(marker)
        timeout = AdaptiveTimeout(budget, self.safety_timeout)
        completion: Completion | None = None

        def on_output(stream: Stream, text: str) -> None:
            nonlocal completion
            if record.is_completed:
                return
            self.registry.update(record.id, lambda r: r.append(stream, text))
            timeout.touch()
            if stream == "stderr":
                fence.check(record.stderr)
            elif completion is None:
                completion = detector.check(record.stdout)
                if completion is not None:
                    # Status is out: close stdin so the shell exits after the trailer
                    session.close_input()
            if completion is not None and fence.seen:
                self._finalize(record, completion.exit_code, completion.output)
                timeout.complete()

        def on_exit(returncode: int | None) -> None:
            if record.is_completed:
                return
            if completion is not None:
                # Status line arrived but stderr was closed before its fence
                self._finalize(record, completion.exit_code, completion.output)
            else:
                logger.info(
                    "Shell exited before marker",
                    job=record.id,
                    returncode=returncode,
                )
                self._finalize(
                    record,
                    exit_code_from_returncode(returncode),
                    strip_marker(record.stdout, marker),
                )
            timeout.complete()

        session.set_listeners(on_output, on_exit)

        try:
            await session.submit(command, marker)
        except StdinUnavailable as exc:
            timeout.cancel()
            session.kill()
            result = f"Error spawning process: {exc}\nExit code: 1"
            if not record.finalize(1, result):
                # The shell exited mid-write and its exit already settled the job
                assert record.final_result is not None
                return record.final_result
            return result

        outcome = await timeout.wait()
        if outcome == "completed":
            assert record.final_result is not None
            return record.final_result
        return self._backgrounded_text(record, outcome, timeout)

    def _finalize(self, record: JobRecord, exit_code: int, clean_stdout: str) -> None:
        clean_stderr = strip_marker(record.stderr, record.marker)
        record.finalize(exit_code, format_result(clean_stdout, clean_stderr, exit_code))

    def _backgrounded_text(
        self, record: JobRecord, outcome: WaitOutcome, timeout: AdaptiveTimeout
    ) -> str:
        if outcome == "safety":
            logger.warning(
                "Command hit maximum wait, running in background",
                job=record.id,
                ceiling_s=self.safety_timeout,
            )
            status = "Command still running in background (maximum timeout reached)."
        else:
            quiet = int(timeout.inactive_for())
            logger.info(
                "Command inactive, running in background",
                job=record.id,
                inactive_s=quiet,
                max_wait_s=record.inactivity_budget,
            )
            status = (
                f"Command still running in background (no output for {quiet}s, "
                f"maxWaitTime: {_secs(record.inactivity_budget)}s)."
            )
        snapshot = _snapshot(record)
        prefix = f"{snapshot}\n\n" if snapshot else ""
        return (
            f"{prefix}{status}\n"
            f"Process ID: {record.id}\n"
            "Use check_process tool to monitor status."
        )

    # -- check status ----------------------------------------------------------

    async def check_status(self, job_id: str, rationale: str = "") -> str:
        record = self.registry.get(job_id)
        if record is None:
            raise JobNotFound(job_id)
        logger.info("Checking process status", job=job_id, rationale=rationale)

        if record.is_completed:
            return _completed_text(record)

        outcome, waited = await poll_until_settled(
            record,
            ceiling_seconds=self.safety_timeout,
            interval_seconds=self.poll_interval,
        )
        if outcome == "completed":
            logger.info("Process completed during wait", job=job_id, waited_s=round(waited, 3))
            return _completed_text(record)

        now = time.monotonic()
        if outcome == "safety":
            reason = f"maximum wait time ({int(waited)}s)"
        else:
            reason = (
                f"no output for {int(now - record.last_output_at)}s "
                f"(maxWaitTime: {_secs(record.inactivity_budget)}s)"
            )
        logger.info("Process still running", job=job_id, reason=reason)

        lines = [
            "Process Status: RUNNING",
            f"Process ID: {record.id}",
            f"Command: {record.command}",
        ]
        if record.rationale:
            lines.append(f"Rationale: {record.rationale}")
        lines.append(f"Running for: {int(now - record.started_at)} seconds")
        lines.append(f"(Waited {int(waited)}s, {reason})")
        snapshot = _snapshot(record)
        body = f"Current Output:\n{snapshot}" if snapshot else "No output captured yet"
        return "\n".join(lines) + "\n\n" + body

    # -- send input ------------------------------------------------------------

    async def send_input(
        self,
        job_id: str,
        text: str,
        rationale: str = "",
        append_newline: bool = True,
        close_stdin: bool = False,
    ) -> str:
        record = self.registry.get(job_id)
        if record is None:
            raise JobNotFound(job_id)
        if record.is_completed:
            raise JobAlreadyCompleted(job_id)
        session = record.session
        if session is None or not session.stdin_open:
            raise StdinUnavailable()

        await session.send_input(text, append_newline=append_newline)
        if close_stdin:
            session.close_input()
        logger.info(
            "Sent input to process",
            job=job_id,
            input=repr(text),
            newline=append_newline,
            closed_stdin=close_stdin,
            rationale=rationale,
        )
        suffix = " (stdin closed)" if close_stdin else ""
        return f"Input sent to process {job_id}{suffix}"


def _completed_text(record: JobRecord) -> str:
    assert record.ended_at is not None
    lines = [
        "Process Status: COMPLETED",
        f"Process ID: {record.id}",
        f"Command: {record.command}",
    ]
    if record.rationale:
        lines.append(f"Rationale: {record.rationale}")
    lines.append(f"Completed after: {int(record.ended_at - record.started_at)} seconds")
    lines.append(f"Exit code: {record.exit_code}")
    return "\n".join(lines) + f"\n\nFinal Result:\n{record.final_result}"


def _snapshot(record: JobRecord) -> str:
    """Output so far, without any part of the status trailer."""
    return format_streams(
        strip_marker(record.stdout, record.marker),
        strip_marker(record.stderr, record.marker),
    )


def _secs(value: float) -> str:
    """20.0 → "20", 0.5 → "0.5"."""
    return f"{value:g}"


_supervisor: Supervisor | None = None


def get_supervisor() -> Supervisor:
    """Lazy singleton — one registry per server process."""
    global _supervisor  # noqa: PLW0603
    if _supervisor is None:
        _supervisor = Supervisor()
    return _supervisor


def reset_supervisor() -> None:
    """Drop the cached supervisor (for tests)."""
    global _supervisor  # noqa: PLW0603
    _supervisor = None
