"""Entry point for `python -m docker_mcp` / `docker-mcp-server`."""

from __future__ import annotations

import argparse
import asyncio
import sys


async def _validate_container(name: str) -> bool:
    from docker_mcp.runtime import get_runtime

    return await get_runtime().container_exists(name)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="docker-mcp-server",
        description="MCP server that runs supervised commands inside a Docker container",
    )
    parser.add_argument(
        "-c",
        "--container-name",
        help="Name of the target container (default: container.name from config)",
    )
    parser.add_argument(
        "--log-level",
        help="Log level, e.g. DEBUG or INFO (default: logging.level from config)",
    )
    args = parser.parse_args(argv)

    from docker_mcp.config import get_settings
    from docker_mcp.logger import logger, set_level
    from docker_mcp.runtime import reset_runtime

    s = get_settings()
    if args.container_name:
        s.container.name = args.container_name
    set_level(args.log_level or s.logging.level)
    reset_runtime()

    name = s.container.name
    if not asyncio.run(_validate_container(name)):
        logger.error(
            "Container not found or not running",
            container=name,
            hint=f"Start it first, e.g. `docker run -d --name {name} <image> sleep infinity`",
        )
        sys.exit(1)

    logger.info("Starting MCP server", container=name, shell=s.container.shell)

    from docker_mcp.server import run_server

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
