"""Command tools: execute_command, check_process, send_input.

Thin argument adapters over the Supervisor. Engine errors come back as MCP
error results carrying the error text.
"""

from __future__ import annotations

from mcp.types import Tool

from docker_mcp.errors import DockerMcpError
from docker_mcp.supervisor import get_supervisor
from docker_mcp.tools._registry import ToolEntry, ToolResult, register, tool_error, tool_text

_RATIONALE = {
    "type": "string",
    "description": "Explanation of why this call is being made.",
}

# -- execute_command -----------------------------------------------------------


def _execute_definition() -> Tool:
    return Tool(
        name="execute_command",
        description=(
            "Execute a shell command inside the Docker container. Returns the "
            "output and exit code when the command finishes. If it produces no "
            "output for max_wait_time seconds (or runs for 10 minutes), it keeps "
            "running in the background and a process ID is returned for "
            "check_process and send_input."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute in the container.",
                },
                "rationale": _RATIONALE,
                "max_wait_time": {
                    "type": "number",
                    "description": (
                        "Seconds without output before returning to the caller (default: 20)."
                    ),
                },
            },
            "required": ["command", "rationale"],
        },
    )


async def _execute_handle(arguments: dict) -> ToolResult:
    command = arguments.get("command", "")
    if not command.strip():
        return tool_error("Error: command must not be empty")
    text = await get_supervisor().execute(
        command,
        rationale=arguments.get("rationale", ""),
        inactivity_budget=arguments.get("max_wait_time"),
    )
    return tool_text(text)


# -- check_process -------------------------------------------------------------


def _check_definition() -> Tool:
    return Tool(
        name="check_process",
        description=(
            "Check a background process by its ID. Returns the final result if it "
            "finished, otherwise waits until it finishes or goes quiet and returns "
            "the output so far."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "process_id": {
                    "type": "string",
                    "description": "The process ID returned by execute_command.",
                },
                "rationale": _RATIONALE,
            },
            "required": ["process_id", "rationale"],
        },
    )


async def _check_handle(arguments: dict) -> ToolResult:
    try:
        text = await get_supervisor().check_status(
            arguments.get("process_id", ""),
            rationale=arguments.get("rationale", ""),
        )
    except DockerMcpError as exc:
        return tool_error(str(exc))
    return tool_text(text)


# -- send_input ----------------------------------------------------------------


def _send_input_definition() -> Tool:
    return Tool(
        name="send_input",
        description=(
            "Send input to the stdin of a running background process. Set "
            "close_stdin to signal end of input once this text is sent."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "process_id": {
                    "type": "string",
                    "description": "The process ID of the running process.",
                },
                "input": {
                    "type": "string",
                    "description": "The input to send to the process.",
                },
                "rationale": _RATIONALE,
                "auto_newline": {
                    "type": "boolean",
                    "default": True,
                    "description": "Append a newline to the input (default: true).",
                },
                "close_stdin": {
                    "type": "boolean",
                    "default": False,
                    "description": "Close the process's stdin after sending (default: false).",
                },
            },
            "required": ["process_id", "input", "rationale"],
        },
    )


async def _send_input_handle(arguments: dict) -> ToolResult:
    try:
        text = await get_supervisor().send_input(
            arguments.get("process_id", ""),
            arguments.get("input", ""),
            rationale=arguments.get("rationale", ""),
            append_newline=arguments.get("auto_newline", True),
            close_stdin=arguments.get("close_stdin", False),
        )
    except DockerMcpError as exc:
        return tool_error(str(exc))
    return tool_text(text)


# -- registration --------------------------------------------------------------

register(
    "execute_command",
    ToolEntry(definition=_execute_definition, handler=_execute_handle),
)
register(
    "check_process",
    ToolEntry(definition=_check_definition, handler=_check_handle),
)
register(
    "send_input",
    ToolEntry(definition=_send_input_definition, handler=_send_input_handle),
)
