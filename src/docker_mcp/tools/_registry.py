"""Tool registry for the MCP server."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from mcp.types import CallToolResult, TextContent, Tool

ToolResult = list[TextContent] | CallToolResult


@dataclass
class ToolEntry:
    """A registered tool with its definition and handler."""

    definition: Callable[[], Tool]
    handler: Callable[[dict], Awaitable[ToolResult]]


_TOOLS: dict[str, ToolEntry] = {}


def register(name: str, entry: ToolEntry) -> None:
    """Register a tool by name."""
    _TOOLS[name] = entry


def all_tools() -> list[Tool]:
    return [e.definition() for e in _TOOLS.values()]


def tool_text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def tool_error(msg: str) -> CallToolResult:
    """Return an MCP error result with a text message."""
    return CallToolResult(
        content=[TextContent(type="text", text=msg)],
        isError=True,
    )


def get_handler(name: str) -> Callable[[dict], Awaitable[ToolResult]] | None:
    """Look up the handler for a tool name."""
    entry = _TOOLS.get(name)
    return entry.handler if entry else None
