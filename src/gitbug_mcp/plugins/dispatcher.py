"""Tool registry: maps tool names to the plugin that serves them."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from gitbug_mcp.plugins.base import PluginBase, ToolDefinition, ToolResult

if TYPE_CHECKING:
    import threading


class ToolNotFoundError(Exception):
    """Raised when no registered plugin provides the requested tool."""

    pass


class ToolExecutionError(Exception):
    """Raised when a plugin raises instead of returning a result."""

    pass


class DuplicateToolError(Exception):
    """Raised when two plugins register the same tool name."""

    pass


class ToolDispatcher:
    """Routes tool calls to registered plugins.

    The registry is composed once at startup; tool order in ``list_tools``
    follows plugin registration order.
    """

    def __init__(self) -> None:
        self._plugins: list[PluginBase] = []
        self._tools: dict[str, tuple[PluginBase, ToolDefinition]] = {}

    def register_plugin(self, plugin: PluginBase) -> None:
        """Register a plugin and index its tools.

        Args:
            plugin: Plugin instance to register.

        Raises:
            DuplicateToolError: If one of its tool names is already taken.
        """
        tools = plugin.get_tools()
        for tool in tools:
            if tool.name in self._tools:
                owner = self._tools[tool.name][0].name
                raise DuplicateToolError(
                    f"Tool '{tool.name}' from plugin '{plugin.name}' "
                    f"is already provided by '{owner}'"
                )

        self._plugins.append(plugin)
        for tool in tools:
            self._tools[tool.name] = (plugin, tool)

    def list_tools(self) -> list[dict[str, Any]]:
        """List all registered tools in MCP format."""
        return [tool.to_dict() for _, tool in self._tools.values()]

    def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        cancel_event: threading.Event | None = None,
    ) -> ToolResult:
        """Call a tool by name.

        Args:
            tool_name: Name of the tool to call.
            arguments: Arguments to pass to the tool.
            cancel_event: Passed through to the plugin.

        Returns:
            ToolResult from the tool execution.

        Raises:
            ToolNotFoundError: If the tool is not registered.
            ToolExecutionError: If the plugin raised.
        """
        entry = self._tools.get(tool_name)
        if entry is None:
            raise ToolNotFoundError(f"Tool not found: {tool_name}")

        plugin, _ = entry
        try:
            return plugin.execute(tool_name, arguments, cancel_event=cancel_event)
        except Exception as e:
            raise ToolExecutionError(f"Tool '{tool_name}' execution failed: {e}") from e

    def get_tool_schema(self, tool_name: str) -> dict[str, Any] | None:
        """Return the input schema for a tool, or None if it is unknown."""
        entry = self._tools.get(tool_name)
        if entry is None:
            return None
        return entry[1].input_schema

    def cleanup(self) -> None:
        """Call cleanup() on every registered plugin."""
        for plugin in self._plugins:
            plugin.cleanup()
