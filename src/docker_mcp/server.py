"""MCP server setup.

Discovers tools from the registry instead of hardcoding them.
"""

from __future__ import annotations

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool

# Import tool modules to trigger self-registration
import docker_mcp.tools._tools_files  # noqa: F401
import docker_mcp.tools._tools_process  # noqa: F401
from docker_mcp.logger import logger
from docker_mcp.tools._registry import all_tools, get_handler, tool_error

server = Server("docker-mcp-server")


@server.list_tools()
async def list_tools() -> list[Tool]:
    return all_tools()


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent] | CallToolResult:
    return await dispatch(name, arguments)


async def dispatch(name: str, arguments: dict | None) -> list[TextContent] | CallToolResult:
    """Run one tool call. Nothing a handler raises gets past this point."""
    handler = get_handler(name)
    if handler is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(arguments or {})
    except Exception as exc:
        logger.exception("Tool call failed", tool=name)
        return tool_error(f"Error: {exc}")


async def run_server() -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
