"""MCP tools. Importing a tool module registers its tools."""
