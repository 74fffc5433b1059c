"""Framed shell sessions — one interactive shell inside the target container.

A FramedShellSession owns a ``<cli> exec -i <container> <shell>`` process and
two long-lived readers that deliver stdout/stderr chunks to a listener as
they arrive. A third watcher fires the exit listener exactly once after
both streams are drained and the process has exited — whether or not any
caller is still waiting on the command.

The input channel stays open after a command is submitted so later input
can still reach the running command.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
from collections.abc import Callable
from typing import Literal

from docker_mcp.errors import SpawnError, StdinUnavailable
from docker_mcp.logger import logger
from docker_mcp.runtime import get_runtime
from docker_mcp.shell.framing import frame_command
from docker_mcp.utils import create_background_task

Stream = Literal["stdout", "stderr"]
OnOutput = Callable[[Stream, str], None]
OnExit = Callable[[int | None], None]

_READ_SIZE = 8192


class FramedShellSession:
    """One spawned shell bound to a container, with event-style output delivery."""

    def __init__(self, container: str, shell: str = "bash", *, label: str = "") -> None:
        self.container = container
        self.shell = shell
        self.label = label
        self.proc: asyncio.subprocess.Process | None = None
        self._on_output: OnOutput | None = None
        self._on_exit: OnExit | None = None
        self._exit_fired = False
        self.exited = asyncio.Event()
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]

    # -- lifecycle -------------------------------------------------------------

    async def open(self) -> None:
        """Spawn the shell and start the readers.

        Raises SpawnError if the process or any of its pipes can't be created.
        """
        argv = get_runtime().exec_argv(self.container, self.shell)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SpawnError(str(exc)) from exc

        if proc.stdin is None or proc.stdout is None or proc.stderr is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            raise SpawnError("Failed to create process streams")

        self.proc = proc
        stdout_task = create_background_task(
            self._pump(proc.stdout, "stdout"), name=f"pump-stdout-{self.label}"
        )
        stderr_task = create_background_task(
            self._pump(proc.stderr, "stderr"), name=f"pump-stderr-{self.label}"
        )
        self._tasks = [
            stdout_task,
            stderr_task,
            create_background_task(
                self._watch_exit(stdout_task, stderr_task), name=f"exit-{self.label}"
            ),
        ]
        logger.debug("Shell session opened", session=self.label, container=self.container)

    def set_listeners(self, on_output: OnOutput | None, on_exit: OnExit | None) -> None:
        self._on_output = on_output
        self._on_exit = on_exit

    def detach(self) -> None:
        """Drop both listeners; later output and the exit event go nowhere."""
        self._on_output = None
        self._on_exit = None

    @property
    def is_alive(self) -> bool:
        return self.proc is not None and self.proc.returncode is None and not self.exited.is_set()

    @property
    def stdin_open(self) -> bool:
        if not self.is_alive:
            return False
        assert self.proc is not None
        stdin = self.proc.stdin
        return stdin is not None and not stdin.is_closing()

    # -- input -----------------------------------------------------------------

    async def write(self, text: str) -> None:
        """Write raw text to the shell's input channel."""
        if not self.stdin_open:
            raise StdinUnavailable()
        assert self.proc is not None and self.proc.stdin is not None
        try:
            self.proc.stdin.write(text.encode())
            await self.proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise StdinUnavailable(f"Error sending input: {exc}") from exc

    async def submit(self, command: str, marker: str) -> None:
        """Write ``command`` followed by the marker + exit-status echo."""
        await self.write(frame_command(command, marker))

    async def send_input(self, text: str, append_newline: bool = True) -> None:
        await self.write(text + ("\n" if append_newline else ""))

    def close_input(self) -> None:
        """Close the input channel (EOF for the shell and whatever reads stdin)."""
        if self.proc is not None and self.proc.stdin is not None:
            if not self.proc.stdin.is_closing():
                self.proc.stdin.close()

    def kill(self) -> None:
        if self.proc is not None and self.proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self.proc.kill()

    # -- readers ---------------------------------------------------------------

    async def _pump(self, stream: asyncio.StreamReader, name: Stream) -> None:
        """Deliver chunks from one stream in arrival order until EOF."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_READ_SIZE)
            if not chunk:
                tail = decoder.decode(b"", final=True)
                if tail:
                    self._dispatch_output(name, tail)
                return
            text = decoder.decode(chunk)
            if text:
                self._dispatch_output(name, text)

    async def _watch_exit(self, *pumps: asyncio.Task) -> None:  # type: ignore[type-arg]
        """Fire the exit listener once both streams hit EOF and the process is reaped."""
        await asyncio.gather(*pumps, return_exceptions=True)
        assert self.proc is not None
        returncode = await self.proc.wait()
        self.exited.set()
        logger.debug("Shell session exited", session=self.label, returncode=returncode)
        self._dispatch_exit(returncode)

    def _dispatch_output(self, name: Stream, text: str) -> None:
        if self._on_output is None:
            return
        try:
            self._on_output(name, text)
        except Exception:
            logger.exception("Session output listener failed", session=self.label, stream=name)

    def _dispatch_exit(self, returncode: int | None) -> None:
        if self._exit_fired:
            return
        self._exit_fired = True
        on_exit = self._on_exit
        if on_exit is None:
            return
        try:
            on_exit(returncode)
        except Exception:
            logger.exception("Session exit listener failed", session=self.label)
