"""Marker protocol — framing commands and classifying what the shell prints.

Every command written to a session is followed by a status trailer. The
shell saves the exit status, fences stderr with the bare marker, then
prints the marker glued to the saved status on stdout::

    make test; __mcp_status=$?; echo "<M>" >&2; echo "<M>EXIT_CODE:$__mcp_status"

where ``<M>`` looks like ``__MCP_END_1718000000000_9f2c41d07a3e__``. The
two pipes are read independently, so the stdout status line alone says
nothing about how much stderr is still in flight. Everything before the
marker on each stream is the command's output; a command is complete
once both markers are in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from docker_mcp.logger import logger
from docker_mcp.utils import unique_token

EXIT_CODE_RE = re.compile(r"EXIT_CODE:(\d+)")

STATUS_VAR = "__mcp_status"

NO_OUTPUT_OK = "Command executed successfully (no output)"
NO_OUTPUT_ERROR = "Command executed with error (no output)"


def make_marker(prefix: str) -> str:
    """``__<PREFIX>_END_<millis>_<random>__`` — unguessable by the command itself."""
    return f"__{unique_token(f'{prefix}_END')}__"


def status_echo(marker: str, status: str = "$?") -> str:
    """Shell statements that fence stderr and print ``<marker>EXIT_CODE:<status>``.

    ``status`` is evaluated first, so the default ``$?`` is still the
    command's status and not the stderr echo's.
    """
    return (
        f"{STATUS_VAR}={status}; "
        f'echo "{marker}" >&2; '
        f'echo "{marker}EXIT_CODE:${STATUS_VAR}"'
    )


def frame_command(command: str, marker: str) -> str:
    """Append the status trailer to ``command``.

    A command ending in ``&`` already ends its list, so the trailer follows
    without a separator; the parent shell still reaches it immediately.
    """
    if command.strip().endswith("&"):
        return f"{command} {status_echo(marker)}\n"
    return f"{command}; {status_echo(marker)}\n"


@dataclass(frozen=True)
class Completion:
    """A marker line found in the output stream."""

    exit_code: int
    output: str  # stdout before the marker, trimmed
    parsed: bool = True  # False when the status could not be read


class CompletionDetector:
    """Watches an append-only stdout buffer for one marker line.

    Only the tail that could still contain a new marker is rescanned on
    each call, so a marker split across two reads is found without
    rescanning the whole buffer every time.
    """

    def __init__(self, marker: str) -> None:
        self.marker = marker
        self._scan_from = 0

    def check(self, stdout: str) -> Completion | None:
        idx = stdout.find(self.marker, self._scan_from)
        if idx < 0:
            self._scan_from = max(0, len(stdout) - len(self.marker) + 1)
            return None
        self._scan_from = idx
        line_end = stdout.find("\n", idx)
        if line_end < 0:
            # Marker seen but its status line is still arriving
            return None
        status_line = stdout[idx + len(self.marker) : line_end]
        output = stdout[:idx].strip()
        match = EXIT_CODE_RE.match(status_line)
        if match is None:
            logger.error(
                "Marker found without exit status",
                marker=self.marker,
                line=status_line[:200],
            )
            return Completion(exit_code=1, output=output, parsed=False)
        return Completion(exit_code=int(match.group(1)), output=output)


class StderrFence:
    """Watches the stderr buffer for the bare marker of the status trailer.

    The trailer echoes it after the command has returned, so once it shows
    up every byte the command wrote to stderr has been read.
    """

    def __init__(self, marker: str) -> None:
        self.marker = marker
        self.seen = False
        self._scan_from = 0

    def check(self, stderr: str) -> bool:
        if self.seen:
            return True
        if stderr.find(self.marker, self._scan_from) >= 0:
            self.seen = True
        else:
            self._scan_from = max(0, len(stderr) - len(self.marker) + 1)
        return self.seen


def strip_marker(text: str, marker: str) -> str:
    """Everything before ``marker`` (or the whole text if absent), trimmed."""
    if marker:
        text = text.split(marker, 1)[0]
    return text.strip()


def exit_code_from_returncode(returncode: int | None) -> int:
    """Process return code → reported exit code; signals and unknowns map to 1."""
    if returncode is None or returncode < 0:
        return 1
    return returncode


def format_streams(stdout: str, stderr: str) -> str:
    """Label both streams when both have text; otherwise return the one that does."""
    stdout = stdout.strip()
    stderr = stderr.strip()
    if stdout and stderr:
        return f"STDOUT:\n{stdout}\n\nSTDERR:\n{stderr}"
    return stdout or stderr


def format_result(stdout: str, stderr: str, exit_code: int) -> str:
    """Final result text for a finished command, ending in ``Exit code: N``."""
    body = format_streams(stdout, stderr)
    if not body:
        body = NO_OUTPUT_OK if exit_code == 0 else NO_OUTPUT_ERROR
    return f"{body}\nExit code: {exit_code}"
