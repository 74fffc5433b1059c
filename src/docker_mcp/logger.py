"""structlog setup for the server process.

stdout is the MCP stdio channel, so every log line goes to stderr. This
module is imported before Settings can load, so the starting level comes
straight from ``LOGGING__LEVEL`` (the variable Settings maps onto
``logging.level``). ``set_level`` applies the final level once the CLI
flags and config.toml have been read.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

LEVEL_ENV = "LOGGING__LEVEL"


def _parse_level(name: str) -> int | None:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else None


def _configure(level: int) -> structlog.stdlib.BoundLogger:
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger("docker_mcp")


logger = _configure(_parse_level(os.environ.get(LEVEL_ENV, "INFO")) or logging.INFO)


def set_level(level_name: str) -> None:
    """Change the root level after startup (``--log-level`` / ``logging.level``)."""
    level = _parse_level(level_name)
    if level is None:
        logger.warning("Unknown log level, keeping current", level=level_name)
        return
    logging.getLogger().setLevel(level)


def _log_fatal(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: object,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
        return
    logger.critical("Server crashed", exc_info=(exc_type, exc_value, exc_tb))


sys.excepthook = _log_fatal
