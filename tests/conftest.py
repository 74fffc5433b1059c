"""Shared test fixtures for docker-mcp-server."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from unittest.mock import patch

import pytest

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures; importable by test files)
# ---------------------------------------------------------------------------

MARKER_RE = re.compile(r"__[A-Z]+_END_\d+_[0-9a-f]+__")


def make_settings(**overrides):
    """Create a Settings object with sensible defaults for testing.

    Usage::

        s = make_settings(supervisor=SupervisorConfig(safety_timeout_seconds=0.5))
    """
    from docker_mcp.config import (
        ContainerConfig,
        FileOpsConfig,
        LoggingConfig,
        Settings,
        SupervisorConfig,
    )

    defaults = {
        "container": ContainerConfig(),
        "supervisor": SupervisorConfig(),
        "file_ops": FileOpsConfig(),
        "logging": LoggingConfig(),
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def marker_in(text: str) -> str:
    """The marker a framed command or single-shot script will echo."""
    match = MARKER_RE.search(text)
    assert match is not None, f"no marker in {text!r}"
    return match.group(0)


def finish(proc: FakeProcess, text: str, stdout: str = "", exit_code: int = 0) -> None:
    """Answer the framed input ``text`` with ``stdout`` and its status trailer."""
    marker = marker_in(text)
    proc.emit_stderr(f"{marker}\n".encode())
    proc.emit_stdout(f"{stdout}{marker}EXIT_CODE:{exit_code}\n".encode())


# ---------------------------------------------------------------------------
# Fake subprocess
# ---------------------------------------------------------------------------

OnInput = Callable[["FakeProcess", str], None]
OnEof = Callable[["FakeProcess"], None]


class FakeStdin:
    """Records writes; mirrors the StreamWriter calls the session makes."""

    def __init__(self, proc: FakeProcess) -> None:
        self._proc = proc
        self.writes: list[str] = []
        self.closed = False
        self.raise_on_write: BaseException | None = None
        self.raise_on_drain: BaseException | None = None

    def write(self, data: bytes) -> None:
        if self.raise_on_write is not None:
            raise self.raise_on_write
        text = data.decode()
        self.writes.append(text)
        if self._proc.on_input is not None:
            self._proc.on_input(self._proc, text)

    async def drain(self) -> None:
        if self.raise_on_drain is not None:
            # Let the readers and exit watcher run first, as a real pipe would
            await settle(20)
            raise self.raise_on_drain
        await asyncio.sleep(0)

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._proc.on_eof is not None:
            self._proc.on_eof(self._proc)

    @property
    def text(self) -> str:
        return "".join(self.writes)


class FakeProcess:
    """Simulates asyncio.subprocess.Process for testing.

    Output is fed by the test (or by ``on_input`` / ``on_eof`` hooks reacting
    to what the session writes); ``close()`` simulates the process exiting.
    """

    def __init__(self, on_input: OnInput | None = None, on_eof: OnEof | None = None) -> None:
        self.on_input = on_input
        self.on_eof = on_eof
        self.stdin = FakeStdin(self)
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self._returncode: int | None = None
        self._wait_event = asyncio.Event()
        self.pid = 12345
        self.killed = False

    def emit_stdout(self, data: bytes) -> None:
        self.stdout.feed_data(data)

    def emit_stderr(self, data: bytes) -> None:
        self.stderr.feed_data(data)

    def close(self, code: int = 0) -> None:
        """Simulate process exit."""
        if self._wait_event.is_set():
            return
        self._returncode = code
        for stream in (self.stdout, self.stderr):
            if stream is not None:
                stream.feed_eof()
        self._wait_event.set()

    async def wait(self) -> int:
        await self._wait_event.wait()
        return self._returncode  # type: ignore[return-value]

    def kill(self) -> None:
        self.killed = True
        self.close(-9)

    @property
    def returncode(self) -> int | None:
        return self._returncode


class FakeShell:
    """Stands in for ``asyncio.create_subprocess_exec``; one FakeProcess per spawn."""

    def __init__(self) -> None:
        self.on_input: OnInput | None = None
        self.on_eof: OnEof | None = None
        self.procs: list[FakeProcess] = []
        self.argv: list[tuple[str, ...]] = []
        self.spawn_error: OSError | None = None

    async def spawn(self, *argv: str, **kwargs) -> FakeProcess:
        self.argv.append(argv)
        if self.spawn_error is not None:
            raise self.spawn_error
        proc = FakeProcess(on_input=self.on_input, on_eof=self.on_eof)
        self.procs.append(proc)
        return proc

    @property
    def last(self) -> FakeProcess:
        return self.procs[-1]


async def settle(rounds: int = 5) -> None:
    """Let pump tasks and listener callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def settings():
    """Install a fresh Settings singleton and clear the other cached singletons."""
    import docker_mcp.config as config
    from docker_mcp.runtime import reset_runtime
    from docker_mcp.supervisor import reset_supervisor

    s = make_settings()
    config._settings = s
    reset_runtime()
    reset_supervisor()
    yield s
    config.reset_settings()
    reset_runtime()
    reset_supervisor()


@pytest.fixture
def fake_shell():
    shell = FakeShell()
    with patch("docker_mcp.shell.session.asyncio.create_subprocess_exec", shell.spawn):
        yield shell
