"""Plugin system for MCP tools."""

from gitbug_mcp.plugins.base import PluginBase, ToolDefinition, ToolResult
from gitbug_mcp.plugins.dispatcher import (
    DuplicateToolError,
    ToolDispatcher,
    ToolExecutionError,
    ToolNotFoundError,
)
from gitbug_mcp.plugins.gitbug import GitBugPlugin

__all__ = [
    "DuplicateToolError",
    "GitBugPlugin",
    "PluginBase",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolResult",
]
