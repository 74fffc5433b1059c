"""File tools: file_ls, file_grep, file_read, file_write, file_edit."""

from __future__ import annotations

from mcp.types import Tool

from docker_mcp import file_ops
from docker_mcp.logger import logger
from docker_mcp.tools._registry import ToolEntry, ToolResult, register, tool_error, tool_text

_RATIONALE = {
    "type": "string",
    "description": "Explanation of why this call is being made.",
}


def _respond(result: file_ops.OpResult) -> ToolResult:
    return tool_text(result.text) if result.ok else tool_error(result.text)


# -- file_ls -------------------------------------------------------------------


def _ls_definition() -> Tool:
    return Tool(
        name="file_ls",
        description=(
            "List files and directories in a path inside the container (ls -la). "
            "Common build and VCS directories are hidden; pass extra glob patterns "
            "in ignore to hide more."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "default": ".",
                    "description": "Absolute directory path to list (default: current directory).",
                },
                "rationale": _RATIONALE,
                "ignore": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Glob patterns of entry names to leave out.",
                },
            },
            "required": ["rationale"],
        },
    )


async def _ls_handle(arguments: dict) -> ToolResult:
    path = arguments.get("path") or "."
    ignore = arguments.get("ignore") or []
    logger.info("Listing directory", path=path, ignore=ignore, rationale=arguments.get("rationale"))
    return _respond(await file_ops.list_directory(path, ignore))


# -- file_grep -----------------------------------------------------------------


def _grep_definition() -> Tool:
    return Tool(
        name="file_grep",
        description="Search for a regex pattern in files inside the container (grep -rn).",
        inputSchema={
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "The search pattern (basic regex).",
                },
                "rationale": _RATIONALE,
                "path": {
                    "type": "string",
                    "default": ".",
                    "description": "Directory to search in (default: current directory).",
                },
                "include": {
                    "type": "string",
                    "description": "File name pattern to include, e.g. '*.py'.",
                },
                "case_insensitive": {
                    "type": "boolean",
                    "default": False,
                    "description": "Case insensitive search (default: false).",
                },
                "max_results": {
                    "type": "integer",
                    "default": 100,
                    "description": "Maximum number of matching lines to return (default: 100).",
                },
            },
            "required": ["pattern", "rationale"],
        },
    )


async def _grep_handle(arguments: dict) -> ToolResult:
    pattern = arguments.get("pattern", "")
    if not pattern:
        return tool_error("Error: pattern must not be empty")
    path = arguments.get("path") or "."
    logger.info(
        "Searching files",
        pattern=pattern,
        path=path,
        include=arguments.get("include"),
        rationale=arguments.get("rationale"),
    )
    return _respond(
        await file_ops.grep(
            pattern,
            path,
            include=arguments.get("include"),
            case_insensitive=arguments.get("case_insensitive", False),
            max_results=arguments.get("max_results"),
        )
    )


# -- file_read -----------------------------------------------------------------


def _read_definition() -> Tool:
    return Tool(
        name="file_read",
        description=(
            "Read a text file inside the container. Lines are returned with their "
            "line numbers (starting at 1) and a tab, up to 2000 lines from offset; "
            "lines longer than 2000 characters are truncated. Binary files are refused."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "Absolute path of the file to read.",
                },
                "rationale": _RATIONALE,
                "offset": {
                    "type": "integer",
                    "default": 0,
                    "description": "Number of lines to skip (0-based, default: 0).",
                },
                "limit": {
                    "type": "integer",
                    "default": 2000,
                    "description": "Maximum number of lines to read (default: 2000).",
                },
            },
            "required": ["file_path", "rationale"],
        },
    )


async def _read_handle(arguments: dict) -> ToolResult:
    file_path = arguments.get("file_path", "")
    if not file_path:
        return tool_error("Error: file_path must not be empty")
    offset = arguments.get("offset", 0)
    limit = arguments.get("limit")
    logger.info(
        "Reading file",
        path=file_path,
        offset=offset,
        limit=limit,
        rationale=arguments.get("rationale"),
    )
    return _respond(await file_ops.read_file(file_path, offset=offset, limit=limit))


# -- file_write ----------------------------------------------------------------


def _write_definition() -> Tool:
    return Tool(
        name="file_write",
        description=(
            "Create or overwrite a file inside the container with exactly the given "
            "content. Parent directories are created. Read the file with file_read "
            "first if it already exists."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "Path of the file to write.",
                },
                "content": {
                    "type": "string",
                    "description": "The content to write.",
                },
                "rationale": _RATIONALE,
            },
            "required": ["file_path", "content", "rationale"],
        },
    )


async def _write_handle(arguments: dict) -> ToolResult:
    file_path = arguments.get("file_path", "")
    if not file_path:
        return tool_error("Error: file_path must not be empty")
    content = arguments.get("content", "")
    logger.info(
        "Writing file",
        path=file_path,
        chars=len(content),
        rationale=arguments.get("rationale"),
    )
    return _respond(await file_ops.write_file(file_path, content))


# -- file_edit -----------------------------------------------------------------


def _edit_definition() -> Tool:
    return Tool(
        name="file_edit",
        description=(
            "Replace an exact string in a file inside the container. Only the first "
            "occurrence is replaced unless replace_all is set. Read the file with "
            "file_read first; old_string must not include the line number prefix."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "file_path": {
                    "type": "string",
                    "description": "Path of the file to edit.",
                },
                "old_string": {
                    "type": "string",
                    "description": "The exact text to replace.",
                },
                "new_string": {
                    "type": "string",
                    "description": "The replacement text.",
                },
                "rationale": _RATIONALE,
                "replace_all": {
                    "type": "boolean",
                    "default": False,
                    "description": "Replace every occurrence (default: false).",
                },
            },
            "required": ["file_path", "old_string", "new_string", "rationale"],
        },
    )


async def _edit_handle(arguments: dict) -> ToolResult:
    file_path = arguments.get("file_path", "")
    old_string = arguments.get("old_string", "")
    if not file_path or not old_string:
        return tool_error("Error: file_path and old_string must not be empty")
    new_string = arguments.get("new_string", "")
    logger.info(
        "Editing file",
        path=file_path,
        old=old_string[:100],
        new=new_string[:100],
        rationale=arguments.get("rationale"),
    )
    return _respond(
        await file_ops.edit_file(
            file_path,
            old_string,
            new_string,
            replace_all=arguments.get("replace_all", False),
        )
    )


# -- registration --------------------------------------------------------------

register("file_ls", ToolEntry(definition=_ls_definition, handler=_ls_handle))
register("file_grep", ToolEntry(definition=_grep_definition, handler=_grep_handle))
register("file_read", ToolEntry(definition=_read_definition, handler=_read_handle))
register("file_write", ToolEntry(definition=_write_definition, handler=_write_handle))
register("file_edit", ToolEntry(definition=_edit_definition, handler=_edit_handle))
