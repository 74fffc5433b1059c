"""Shell sessions inside the target container, the marker protocol, and timeouts."""

from docker_mcp.shell.framing import (
    Completion,
    CompletionDetector,
    StderrFence,
    format_result,
    format_streams,
    frame_command,
    make_marker,
)
from docker_mcp.shell.session import FramedShellSession
from docker_mcp.shell.timeouts import AdaptiveTimeout, WaitOutcome, poll_until_settled

__all__ = [
    "AdaptiveTimeout",
    "Completion",
    "CompletionDetector",
    "FramedShellSession",
    "StderrFence",
    "WaitOutcome",
    "format_result",
    "format_streams",
    "frame_command",
    "make_marker",
    "poll_until_settled",
]
