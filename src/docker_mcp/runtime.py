"""Container runtime — the CLI used to reach the target sandbox.

Docker is the default. Any CLI that speaks ``exec -i`` and ``inspect`` the
same way (podman) can be selected with ``container.runtime``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from docker_mcp.logger import logger


@dataclass(frozen=True)
class ContainerRuntime:
    name: str
    cli: str

    def exec_argv(self, container: str, shell: str) -> list[str]:
        """argv for an interactive shell inside ``container`` with piped stdio."""
        return [self.cli, "exec", "-i", container, shell]

    async def container_exists(self, container: str) -> bool:
        """True iff ``<cli> inspect <container>`` succeeds."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.cli,
                "inspect",
                container,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            # OSError covers FileNotFoundError (CLI missing) and other
            # process-spawn failures.
            logger.warning("Container inspect failed to start", cli=self.cli, err=str(exc))
            return False
        return await proc.wait() == 0


def detect_runtime() -> ContainerRuntime:
    from docker_mcp.config import get_settings

    cli = get_settings().container.runtime
    return ContainerRuntime(name=cli.rsplit("/", 1)[-1], cli=cli)


_runtime: ContainerRuntime | None = None


def get_runtime() -> ContainerRuntime:
    """Lazy singleton — caches the result of detect_runtime()."""
    global _runtime  # noqa: PLW0603
    if _runtime is None:
        _runtime = detect_runtime()
        logger.info("Container runtime detected", name=_runtime.name, cli=_runtime.cli)
    return _runtime


def reset_runtime() -> None:
    """Clear the cached runtime (for tests and CLI overrides)."""
    global _runtime  # noqa: PLW0603
    _runtime = None
