"""MCP server for supervised command execution inside a Docker container."""

__version__ = "1.0.0"
