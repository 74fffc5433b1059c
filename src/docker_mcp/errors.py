"""Exception hierarchy for the supervision engine.

Supervisor operations raise these; the tool layer turns every
``DockerMcpError`` into an MCP error result carrying ``str(exc)``.
"""

from __future__ import annotations


class DockerMcpError(Exception):
    """Base class for failures reported back to the caller as text."""


class SpawnError(DockerMcpError):
    """The shell session process or one of its channels could not be created."""


class StdinUnavailable(DockerMcpError):
    """The session's input channel is closed or its process has exited."""

    def __init__(self, message: str = "Process stdin not available") -> None:
        super().__init__(message)


class JobNotFound(DockerMcpError):
    def __init__(self, job_id: str) -> None:
        super().__init__("Process not found")
        self.job_id = job_id


class JobAlreadyCompleted(DockerMcpError):
    def __init__(self, job_id: str) -> None:
        super().__init__("Cannot send input to completed process")
        self.job_id = job_id
