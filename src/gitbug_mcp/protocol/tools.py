"""MCP tools/list and tools/call handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from gitbug_mcp.plugins.base import ToolResult
from gitbug_mcp.plugins.dispatcher import ToolDispatcher, ToolExecutionError, ToolNotFoundError

if TYPE_CHECKING:
    import threading


@dataclass
class ToolsListResult:
    """Result of a tools/list request."""

    tools: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"tools": self.tools}


class ToolsHandler:
    """Answers tools/list and tools/call through the dispatcher.

    Dispatcher failures become error results rather than JSON-RPC errors,
    so the calling model sees them.
    """

    def __init__(self, dispatcher: ToolDispatcher) -> None:
        self._dispatcher = dispatcher

    def handle_list(self) -> ToolsListResult:
        return ToolsListResult(tools=self._dispatcher.list_tools())

    def handle_call(
        self,
        name: str,
        arguments: dict[str, Any],
        cancel_event: threading.Event | None = None,
    ) -> ToolResult:
        """Handle a tools/call request.

        Args:
            name: Name of the tool to call.
            arguments: Tool arguments.
            cancel_event: Optional event that aborts the call when set.

        Returns:
            The tool's result, or an error result if dispatch failed.
        """
        try:
            return self._dispatcher.call_tool(name, arguments, cancel_event)
        except ToolNotFoundError:
            return ToolResult.error(f"Tool not found: {name}")
        except ToolExecutionError as e:
            return ToolResult.error(f"Tool execution failed: {e}")
