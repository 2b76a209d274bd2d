"""MCP protocol layer: JSON-RPC framing, stdio transport, lifecycle, tools."""

from gitbug_mcp.protocol.jsonrpc import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    format_error,
    format_response,
    parse_message,
)
from gitbug_mcp.protocol.lifecycle import (
    MCP_PROTOCOL_VERSION,
    LifecycleManager,
    LifecycleState,
    ProtocolError,
)
from gitbug_mcp.protocol.tools import ToolsHandler, ToolsListResult
from gitbug_mcp.protocol.transport import StdioTransport

__all__ = [
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "LifecycleManager",
    "LifecycleState",
    "MCP_PROTOCOL_VERSION",
    "ProtocolError",
    "StdioTransport",
    "ToolsHandler",
    "ToolsListResult",
    "format_error",
    "format_response",
    "parse_message",
]
