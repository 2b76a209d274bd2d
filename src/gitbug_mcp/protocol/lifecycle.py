"""MCP connection lifecycle.

Tracks the initialize / notifications/initialized handshake; every other
request is refused until it has completed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gitbug_mcp import __version__

# Advertised when the client does not name a version
MCP_PROTOCOL_VERSION = "2024-11-05"

SERVER_NAME = "gitbug-mcp"


class LifecycleState(Enum):
    """Connection states, in handshake order."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTDOWN = "shutdown"


class ProtocolError(Exception):
    """Raised when a message arrives in the wrong lifecycle state."""

    pass


@dataclass
class LifecycleManager:
    """Handshake state for a single client connection."""

    server_info: dict[str, str] = field(
        default_factory=lambda: {"name": SERVER_NAME, "version": __version__}
    )
    capabilities: dict[str, Any] = field(default_factory=lambda: {"tools": {"listChanged": False}})
    state: LifecycleState = LifecycleState.UNINITIALIZED

    @property
    def is_ready(self) -> bool:
        """True once notifications/initialized has been received."""
        return self.state == LifecycleState.READY

    def require_ready(self) -> None:
        """Raise ProtocolError unless the handshake has completed."""
        if self.state == LifecycleState.SHUTDOWN:
            raise ProtocolError("Connection is shutdown")
        if not self.is_ready:
            raise ProtocolError("Connection is not ready")

    def handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle the ``initialize`` request.

        The client's requested protocol version is echoed back.

        Args:
            params: Request parameters.

        Returns:
            The ``initialize`` result payload.

        Raises:
            ProtocolError: If the connection was already initialized.
        """
        if self.state != LifecycleState.UNINITIALIZED:
            raise ProtocolError("Server already initialized")

        self.state = LifecycleState.INITIALIZING

        return {
            "protocolVersion": params.get("protocolVersion", MCP_PROTOCOL_VERSION),
            "capabilities": self.capabilities,
            "serverInfo": self.server_info,
        }

    def handle_initialized(self) -> None:
        """Handle the ``notifications/initialized`` notification."""
        if self.state != LifecycleState.INITIALIZING:
            raise ProtocolError("Server not initializing")
        self.state = LifecycleState.READY

    def handle_shutdown(self) -> None:
        self.state = LifecycleState.SHUTDOWN
