"""MCP server exposing git-bug bug-tracker operations as tools."""

__version__ = "1.0.0"
