"""MCP server: turns JSON-RPC lines into tool calls and back."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from gitbug_mcp.config import ServerConfig, load_config
from gitbug_mcp.plugins.base import PluginBase, ToolResult
from gitbug_mcp.plugins.dispatcher import ToolDispatcher
from gitbug_mcp.plugins.gitbug import GitBugPlugin
from gitbug_mcp.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    format_error,
    format_response,
    parse_message,
)
from gitbug_mcp.protocol.lifecycle import LifecycleManager, ProtocolError
from gitbug_mcp.protocol.tools import ToolsHandler
from gitbug_mcp.runner import GitBugClient
from gitbug_mcp.security.engine import RateLimitExceeded, SecurityEngine, SecurityViolation

# Concurrent tools/call requests served by submit_message
MAX_CALL_WORKERS = 4


def build_client(config: ServerConfig) -> GitBugClient:
    """Create the git-bug runner described by the configuration."""
    return GitBugClient(
        command=config.gitbug_command,
        cwd=config.repo_path,
        env=config.gitbug_env,
    )


class MCPServer:
    """MCP server for git-bug.

    Handles:
    - Lifecycle management (initialize/initialized, ping)
    - Tool listing and execution through the plugin dispatcher
    - Cancellation of running tool calls (notifications/cancelled)
    - Input validation, optional rate limiting and audit logging
    """

    def __init__(
        self,
        config_path: Path | None = None,
        config: ServerConfig | None = None,
        register_gitbug: bool = True,
    ) -> None:
        """Initialize the server.

        Args:
            config_path: YAML config file to load.
            config: Ready-made configuration (takes precedence over config_path).
            register_gitbug: Register the git-bug plugin built from the config.
        """
        if config is not None:
            self._config = config
        elif config_path is not None:
            self._config = load_config(config_path)
        else:
            self._config = ServerConfig()

        self._lifecycle = LifecycleManager()
        self._dispatcher = ToolDispatcher()
        self._tools_handler = ToolsHandler(self._dispatcher)
        self._security_engine = SecurityEngine(self._config)

        # Running tools/call requests, by request id
        self._cancel_events: dict[int | str, threading.Event] = {}
        self._cancel_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

        if register_gitbug:
            self.register_plugin(GitBugPlugin(build_client(self._config)))

    @property
    def config(self) -> ServerConfig:
        return self._config

    def register_plugin(self, plugin: PluginBase) -> None:
        """Register a plugin's tools with the dispatcher."""
        self._dispatcher.register_plugin(plugin)

    def list_tools(self) -> list[dict[str, Any]]:
        """List all registered tools in MCP format."""
        return self._dispatcher.list_tools()

    def handle_message(self, raw_message: str) -> str | None:
        """Handle one incoming JSON-RPC message and wait for its answer.

        Args:
            raw_message: Raw JSON-RPC message string.

        Returns:
            Response string, or None for notifications.
        """
        try:
            message = parse_message(raw_message)
        except JsonRpcError as e:
            return format_error(None, e.code, str(e))

        if isinstance(message, JsonRpcNotification):
            return self._handle_notification(message)
        return self._handle_request(message)

    def submit_message(self, raw_message: str, send: Callable[[str], None]) -> None:
        """Handle one incoming message without blocking on tool calls.

        ``tools/call`` requests run on a worker thread, so a later
        ``notifications/cancelled`` can still be read and stop them. Every
        other message is answered before this returns. Responses are passed
        to ``send`` and may therefore arrive out of request order.

        Args:
            raw_message: Raw JSON-RPC message string.
            send: Called with each serialized response; must be thread-safe.
        """
        try:
            message = parse_message(raw_message)
        except JsonRpcError as e:
            send(format_error(None, e.code, str(e)))
            return

        if isinstance(message, JsonRpcRequest) and message.method == "tools/call":
            # Registered before the worker starts so an immediate cancel finds it
            cancel_event = self._track_call(message.id)
            self._get_executor().submit(self._answer_call, message, cancel_event, send)
            return

        if isinstance(message, JsonRpcNotification):
            response = self._handle_notification(message)
        else:
            response = self._handle_request(message)
        if response is not None:
            send(response)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=MAX_CALL_WORKERS, thread_name_prefix="gitbug-mcp-call"
            )
        return self._executor

    def _answer_call(
        self,
        request: JsonRpcRequest,
        cancel_event: threading.Event,
        send: Callable[[str], None],
    ) -> None:
        try:
            response = self._handle_request(request, cancel_event)
        except Exception as e:
            response = format_error(request.id, INTERNAL_ERROR, f"Internal error: {e}")
        finally:
            self._untrack_call(request.id, cancel_event)
        send(response)

    def _track_call(self, request_id: int | str) -> threading.Event:
        cancel_event = threading.Event()
        with self._cancel_lock:
            self._cancel_events[request_id] = cancel_event
        return cancel_event

    def _untrack_call(self, request_id: int | str, cancel_event: threading.Event) -> None:
        with self._cancel_lock:
            if self._cancel_events.get(request_id) is cancel_event:
                del self._cancel_events[request_id]

    def cancel_request(self, request_id: int | str) -> bool:
        """Signal a running tools/call to stop.

        Returns:
            True if a call with that id was running.
        """
        with self._cancel_lock:
            cancel_event = self._cancel_events.get(request_id)
        if cancel_event is None:
            return False
        cancel_event.set()
        return True

    def cancel_all(self) -> None:
        """Signal every running tools/call to stop."""
        with self._cancel_lock:
            events = list(self._cancel_events.values())
        for cancel_event in events:
            cancel_event.set()

    def _handle_notification(self, notification: JsonRpcNotification) -> None:
        params = notification.params or {}
        if notification.method == "notifications/initialized":
            try:
                self._lifecycle.handle_initialized()
            except ProtocolError:
                pass  # notifications cannot be answered
        elif notification.method == "notifications/cancelled":
            request_id = params.get("requestId")
            if isinstance(request_id, int | str) and not isinstance(request_id, bool):
                self.cancel_request(request_id)
        return None

    def _handle_request(
        self, request: JsonRpcRequest, cancel_event: threading.Event | None = None
    ) -> str:
        method = request.method
        params = request.params or {}
        msg_id = request.id

        # Allowed before the handshake completes
        if method == "initialize":
            try:
                return format_response(msg_id, self._lifecycle.handle_initialize(params))
            except ProtocolError as e:
                return format_error(msg_id, INTERNAL_ERROR, str(e))

        if method == "ping":
            return format_response(msg_id, {})

        try:
            self._lifecycle.require_ready()
        except ProtocolError as e:
            return format_error(msg_id, INTERNAL_ERROR, str(e))

        if method == "tools/list":
            return format_response(msg_id, self._tools_handler.handle_list().to_dict())

        if method == "tools/call":
            if cancel_event is not None:
                return self._handle_tools_call(msg_id, params, cancel_event)

            cancel_event = self._track_call(msg_id)
            try:
                return self._handle_tools_call(msg_id, params, cancel_event)
            finally:
                self._untrack_call(msg_id, cancel_event)

        return format_error(msg_id, METHOD_NOT_FOUND, f"Unknown method: {method}")

    def _handle_tools_call(
        self, msg_id: int | str, params: dict[str, Any], cancel_event: threading.Event
    ) -> str:
        name = params.get("name")
        arguments = params.get("arguments") or {}
        if not isinstance(name, str) or not isinstance(arguments, dict):
            return format_error(
                msg_id,
                INVALID_PARAMS,
                "tools/call requires a string 'name' and object 'arguments'",
            )

        try:
            self._security_engine.check_rate_limit(name)
        except RateLimitExceeded:
            return format_error(msg_id, INTERNAL_ERROR, f"Rate limit exceeded for tool: {name}")

        return format_response(msg_id, self.call_tool(name, arguments, cancel_event).to_dict())

    def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        cancel_event: threading.Event | None = None,
    ) -> ToolResult:
        """Validate, audit and execute one tool call.

        Args:
            name: Tool name.
            arguments: Tool arguments.
            cancel_event: When set, the running git-bug command is killed.

        Returns:
            The tool result; refusals and failures come back as error results.
        """
        schema = self._dispatcher.get_tool_schema(name)
        if schema is not None:
            try:
                arguments = self._security_engine.validate_input(name, schema, arguments)
            except SecurityViolation as e:
                return ToolResult.error(str(e))

        request_id = self._security_engine.generate_request_id()
        self._security_engine.log_tool_execution(request_id, name, arguments)

        start = time.perf_counter()
        result = self._tools_handler.handle_call(name, arguments, cancel_event)
        duration_ms = (time.perf_counter() - start) * 1000

        self._security_engine.log_tool_result(
            request_id, "error" if result.is_error else "success", duration_ms
        )
        return result

    def close(self) -> None:
        """Wait for running tool calls, then release resources."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._lifecycle.handle_shutdown()
        self._dispatcher.cleanup()
        self._security_engine.close()

    def __enter__(self) -> MCPServer:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
