"""Plugin interface and the tool data structures plugins exchange."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import threading


@dataclass
class ToolDefinition:
    """A tool name bound to its description and JSON input schema."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the MCP tools/list entry format."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class ToolResult:
    """Outcome of a single tool call.

    ``content`` is what the model reads; ``structured_content`` is the
    machine-readable result object, absent for errors.
    """

    content: list[dict[str, Any]]
    is_error: bool = False
    structured_content: dict[str, Any] | None = None

    @classmethod
    def text(
        cls,
        text: str,
        structured_content: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Build a successful result with a single text block."""
        return cls(
            content=[{"type": "text", "text": text}],
            structured_content=structured_content,
        )

    @classmethod
    def error(cls, text: str) -> ToolResult:
        """Build an error result with a single text block."""
        return cls(content=[{"type": "text", "text": text}], is_error=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the MCP tools/call result format."""
        result: dict[str, Any] = {
            "content": self.content,
            "isError": self.is_error,
        }
        if self.structured_content is not None:
            result["structuredContent"] = self.structured_content
        return result


class PluginBase(ABC):
    """A group of tools served by the MCP server."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the plugin identifier."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Return the plugin version."""
        pass

    @abstractmethod
    def get_tools(self) -> list[ToolDefinition]:
        """Return the tools this plugin provides."""
        pass

    @abstractmethod
    def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        cancel_event: threading.Event | None = None,
    ) -> ToolResult:
        """Execute a tool.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments, already validated against the schema.
            cancel_event: Set by the server when the client cancels the call;
                long-running work should stop when it fires.

        Returns:
            ToolResult with content and error status.
        """
        pass

    def cleanup(self) -> None:
        """Release plugin resources on server shutdown."""
        return None
