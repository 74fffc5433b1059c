"""Single-shot scripts — the framing protocol without jobs or adaptive timers.

The script ends with its own status trailer. The runner writes it,
closes stdin, and resolves once both markers are in, on shell exit, or on
a fixed ceiling (after which the shell is killed).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from docker_mcp.config import get_settings
from docker_mcp.errors import SpawnError, StdinUnavailable
from docker_mcp.logger import logger
from docker_mcp.shell.framing import (
    Completion,
    CompletionDetector,
    StderrFence,
    exit_code_from_returncode,
    make_marker,
    strip_marker,
)
from docker_mcp.shell.session import FramedShellSession, Stream


@dataclass
class ShotResult:
    stdout: str  # text before the marker, surrounding newlines removed
    stderr: str
    exit_code: int
    timed_out: bool = False
    spawn_error: str | None = None


def _before_marker(stdout: str, marker: str) -> str:
    # Keep leading spaces: numbered read output is right-aligned
    return stdout.split(marker, 1)[0].strip("\n")


async def run_single_shot(
    build_script: Callable[[str], str],
    prefix: str,
    *,
    timeout: float | None = None,
) -> ShotResult:
    """Run ``build_script(marker)`` in a fresh shell and collect its output."""
    s = get_settings()
    timeout = timeout if timeout is not None else s.file_ops.timeout_seconds
    marker = make_marker(prefix)
    detector = CompletionDetector(marker)
    session = FramedShellSession(s.container.name, s.container.shell, label=prefix.lower())

    try:
        await session.open()
    except SpawnError as exc:
        logger.error("Failed to spawn shell", op=prefix, err=str(exc))
        return ShotResult(stdout="", stderr="", exit_code=1, spawn_error=str(exc))

    fence = StderrFence(marker)
    loop = asyncio.get_running_loop()
    done: asyncio.Future[int] = loop.create_future()
    completion: Completion | None = None
    stdout_buf = ""
    stderr_buf = ""

    def on_output(stream: Stream, text: str) -> None:
        nonlocal completion, stdout_buf, stderr_buf
        if stream == "stderr":
            stderr_buf += text
            fence.check(stderr_buf)
        else:
            stdout_buf += text
            completion = completion or detector.check(stdout_buf)
        if completion is not None and fence.seen and not done.done():
            done.set_result(completion.exit_code)

    def on_exit(returncode: int | None) -> None:
        if done.done():
            return
        if completion is not None:
            done.set_result(completion.exit_code)
        else:
            done.set_result(exit_code_from_returncode(returncode))

    session.set_listeners(on_output, on_exit)

    try:
        await session.write(build_script(marker))
    except StdinUnavailable as exc:
        session.detach()
        session.kill()
        return ShotResult(stdout="", stderr="", exit_code=1, spawn_error=str(exc))
    session.close_input()

    try:
        exit_code = await asyncio.wait_for(asyncio.shield(done), timeout=timeout)
    except TimeoutError:
        session.detach()
        session.kill()
        logger.warning("Single-shot script timed out", op=prefix, timeout_s=timeout)
        return ShotResult(
            stdout=_before_marker(stdout_buf, marker),
            stderr=strip_marker(stderr_buf, marker),
            exit_code=1,
            timed_out=True,
        )

    session.detach()
    return ShotResult(
        stdout=_before_marker(stdout_buf, marker),
        stderr=strip_marker(stderr_buf, marker),
        exit_code=exit_code,
    )
