"""Tests for the MCP server message handling."""

import json
import queue
import threading
import time
from pathlib import Path

import pytest

from gitbug_mcp.config import ServerConfig
from gitbug_mcp.plugins.base import PluginBase, ToolDefinition, ToolResult
from gitbug_mcp.plugins.gitbug import GitBugPlugin
from gitbug_mcp.runner import GitBugClient, GitBugCommandError
from gitbug_mcp.server import MCPServer, build_client

MINIMAL_CONFIG = """
version: "1.0"
gitbug:
  command: git-bug
tools:
  rate_limits: {}
"""


class MockPlugin(PluginBase):
    """Mock plugin for testing."""

    @property
    def name(self) -> str:
        return "mock"

    @property
    def version(self) -> str:
        return "1.0.0"

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="echo",
                description="Echoes input",
                input_schema={
                    "type": "object",
                    "properties": {"message": {"type": "string"}},
                    "required": ["message"],
                },
            )
        ]

    def execute(
        self,
        tool_name: str,
        arguments: dict,
        cancel_event: threading.Event | None = None,
    ) -> ToolResult:
        return ToolResult.text(arguments["message"], {"echo": arguments["message"]})


def _request(msg_id, method, params=None) -> str:
    message = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def _initialize(server: MCPServer) -> None:
    server.handle_message(
        _request(
            1,
            "initialize",
            {
                "protocolVersion": "2024-11-05",
                "clientInfo": {"name": "test", "version": "1.0"},
                "capabilities": {},
            },
        )
    )
    server.handle_message(json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}))


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "gitbug-mcp.yaml"
    path.write_text(MINIMAL_CONFIG)
    return path


@pytest.fixture
def server(recording_client) -> MCPServer:
    """A server whose git-bug plugin records instead of running commands."""
    server = MCPServer(register_gitbug=False)
    server.register_plugin(GitBugPlugin(recording_client))
    return server


@pytest.fixture
def initialized_server(server: MCPServer) -> MCPServer:
    _initialize(server)
    return server


def _call_request(msg_id, name: str, arguments: dict) -> str:
    return _request(msg_id, "tools/call", {"name": name, "arguments": arguments})


def _call(server: MCPServer, name: str, arguments: dict, msg_id: int = 2) -> dict:
    response = server.handle_message(_call_request(msg_id, name, arguments))
    return json.loads(response)


class TestMCPServerSetup:
    """Tests for server construction."""

    def test_default_server_registers_gitbug_tools(self):
        """Without arguments the git-bug tools should be available."""
        server = MCPServer()
        names = {t["name"] for t in server.list_tools()}

        assert "create_issue" in names
        assert len(names) == 7

    def test_loads_config_file(self, config_file: Path):
        server = MCPServer(config_path=config_file)

        assert server.config.gitbug_command == "git-bug"

    def test_explicit_config_wins(self, config_file: Path):
        config = ServerConfig(gitbug_command="/opt/git-bug")
        server = MCPServer(config_path=config_file, config=config)

        assert server.config.gitbug_command == "/opt/git-bug"

    def test_build_client_uses_config(self, tmp_path: Path):
        config = ServerConfig(
            gitbug_command="/opt/git-bug",
            gitbug_repo_path=str(tmp_path),
            gitbug_env={"A": "1"},
        )
        client = build_client(config)

        assert isinstance(client, GitBugClient)
        assert client.command == "/opt/git-bug"
        assert client.cwd == tmp_path
        assert client.extra_env == {"A": "1"}

    def test_registers_extra_plugin(self, server: MCPServer):
        server.register_plugin(MockPlugin())

        names = {t["name"] for t in server.list_tools()}
        assert "echo" in names
        assert len(names) == 8


class TestLifecycleHandling:
    """Tests for the initialize handshake through handle_message."""

    def test_handles_initialize(self, server: MCPServer):
        response = json.loads(
            server.handle_message(
                _request(1, "initialize", {"protocolVersion": "2025-03-26", "capabilities": {}})
            )
        )

        assert response["id"] == 1
        result = response["result"]
        assert result["protocolVersion"] == "2025-03-26"
        assert result["serverInfo"] == {"name": "gitbug-mcp", "version": "1.0.0"}
        assert "tools" in result["capabilities"]

    def test_rejects_second_initialize(self, initialized_server: MCPServer):
        response = json.loads(initialized_server.handle_message(_request(5, "initialize", {})))

        assert response["error"]["code"] == -32603

    def test_rejects_tools_list_before_initialized(self, server: MCPServer):
        response = json.loads(server.handle_message(_request(1, "tools/list")))

        assert response["error"]["code"] == -32603
        assert "not ready" in response["error"]["message"]

    def test_ping_allowed_anytime(self, server: MCPServer):
        response = json.loads(server.handle_message(_request(7, "ping")))

        assert response == {"jsonrpc": "2.0", "id": 7, "result": {}}

    def test_notifications_get_no_response(self, server: MCPServer):
        notification = json.dumps({"jsonrpc": "2.0", "method": "notifications/cancelled"})

        assert server.handle_message(notification) is None

    def test_parse_error(self, server: MCPServer):
        response = json.loads(server.handle_message("{not json"))

        assert response["id"] is None
        assert response["error"]["code"] == -32700

    def test_unknown_method(self, initialized_server: MCPServer):
        response = json.loads(initialized_server.handle_message(_request(3, "resources/list")))

        assert response["error"]["code"] == -32601

    def test_close_shuts_connection(self, initialized_server: MCPServer):
        initialized_server.close()
        response = json.loads(initialized_server.handle_message(_request(3, "tools/list")))

        assert "shutdown" in response["error"]["message"]


class TestToolsEndpoints:
    """Tests for tools/list and tools/call."""

    def test_tools_list(self, initialized_server: MCPServer):
        response = json.loads(initialized_server.handle_message(_request(2, "tools/list")))
        tools = response["result"]["tools"]

        assert {t["name"] for t in tools} == {
            "create_issue",
            "list_issues",
            "show_issue",
            "add_comment",
            "update_issue_status",
            "update_issue_title",
            "delete_issue",
        }
        for tool in tools:
            assert tool["inputSchema"]["type"] == "object"
            assert tool["description"]

    def test_tools_call_success(self, initialized_server: MCPServer, recording_client):
        recording_client.output = "a1b2c3d\n"

        response = _call(initialized_server, "create_issue", {"title": "X", "message": "Y"})
        result = response["result"]

        assert result["isError"] is False
        assert result["content"] == [{"type": "text", "text": "Created issue: X\na1b2c3d"}]
        assert result["structuredContent"]["bug_id"] == "a1b2c3d"
        assert result["structuredContent"]["success"] is True

    def test_tools_call_command_failure(self, initialized_server: MCPServer, recording_client):
        recording_client.error = GitBugCommandError("exit status 1", "boom", 1)

        response = _call(initialized_server, "delete_issue", {"bug_id": "a1b"})
        result = response["result"]

        assert result["isError"] is True
        assert "structuredContent" not in result
        assert "boom" in result["content"][0]["text"]

    def test_missing_required_argument_never_runs_command(
        self, initialized_server: MCPServer, recording_client
    ):
        response = _call(initialized_server, "create_issue", {"title": "X"})
        result = response["result"]

        assert result["isError"] is True
        assert "Input validation failed" in result["content"][0]["text"]
        assert "message" in result["content"][0]["text"]
        assert recording_client.calls == []

    def test_wrong_type_rejected(self, initialized_server: MCPServer, recording_client):
        response = _call(initialized_server, "show_issue", {"bug_id": 42})

        assert response["result"]["isError"] is True
        assert recording_client.calls == []

    def test_unknown_tool(self, initialized_server: MCPServer):
        response = _call(initialized_server, "no_such_tool", {})

        assert response["result"]["isError"] is True
        assert response["result"]["content"][0]["text"] == "Tool not found: no_such_tool"

    def test_missing_tool_name(self, initialized_server: MCPServer):
        response = json.loads(
            initialized_server.handle_message(_request(9, "tools/call", {"arguments": {}}))
        )

        assert response["error"]["code"] == -32602

    def test_invalid_status_reaches_handler(
        self, initialized_server: MCPServer, recording_client
    ):
        """Status values are checked by the tool, not by the schema."""
        response = _call(
            initialized_server, "update_issue_status", {"bug_id": "a1b", "status": "wontfix"}
        )

        assert response["result"]["isError"] is True
        assert "Invalid status: wontfix" in response["result"]["content"][0]["text"]
        assert recording_client.calls == []


class TestRateLimiting:
    """Tests for per-tool rate limits."""

    def test_rate_limit_enforced(self, recording_client):
        config = ServerConfig(tool_rate_limits={"list_issues": 2})
        server = MCPServer(config=config, register_gitbug=False)
        server.register_plugin(GitBugPlugin(recording_client))
        _initialize(server)

        assert "result" in _call(server, "list_issues", {}, msg_id=2)
        assert "result" in _call(server, "list_issues", {}, msg_id=3)
        response = _call(server, "list_issues", {}, msg_id=4)

        assert response["error"]["code"] == -32603
        assert "Rate limit exceeded for tool: list_issues" in response["error"]["message"]
        assert len(recording_client.calls) == 2

    def test_limits_are_per_tool(self, recording_client):
        config = ServerConfig(tool_rate_limits={"default": 1})
        server = MCPServer(config=config, register_gitbug=False)
        server.register_plugin(GitBugPlugin(recording_client))
        _initialize(server)

        assert "result" in _call(server, "list_issues", {}, msg_id=2)
        assert "result" in _call(server, "show_issue", {"bug_id": "a"}, msg_id=3)

    def test_no_rate_limit_by_default(self, initialized_server: MCPServer, recording_client):
        """Without configured limits every call reaches git-bug."""
        for msg_id in range(2, 72):
            response = _call(initialized_server, "show_issue", {"bug_id": "a"}, msg_id=msg_id)
            assert "result" in response

        assert len(recording_client.calls) == 70


class TestAuditTrail:
    """Tests for audit logging of tool calls."""

    def test_tool_calls_are_audited(self, tmp_path: Path, recording_client):
        log_path = tmp_path / "audit" / "audit.log"
        server = MCPServer(config=ServerConfig(audit_log_file=str(log_path)), register_gitbug=False)
        server.register_plugin(GitBugPlugin(recording_client))
        _initialize(server)

        _call(server, "show_issue", {"bug_id": "a1b"})
        _call(server, "create_issue", {"title": "only title"}, msg_id=3)
        server.close()

        events = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert [e["type"] for e in events] == ["request", "response", "security"]
        assert events[0]["tool_name"] == "show_issue"
        assert events[0]["arguments"] == {"bug_id": "a1b"}
        assert events[1]["result_status"] == "success"
        assert events[1]["request_id"] == events[0]["request_id"]
        assert events[2]["event_type"] == "input_validation_failed"


class TestCancellation:
    """Tests for cancelling running tool calls."""

    def _cancelled(self, request_id) -> str:
        return json.dumps(
            {
                "jsonrpc": "2.0",
                "method": "notifications/cancelled",
                "params": {"requestId": request_id, "reason": "user aborted"},
            }
        )

    def test_tool_call_gets_a_cancel_event(self, initialized_server: MCPServer, recording_client):
        _call(initialized_server, "delete_issue", {"bug_id": "a1b"})

        [cancel_event] = recording_client.cancel_events
        assert isinstance(cancel_event, threading.Event)
        assert not cancel_event.is_set()

    def test_cancel_notification_kills_running_command(self, stub_gitbug: Path):
        config = ServerConfig(gitbug_command=str(stub_gitbug), gitbug_env={"STUB_SLEEP": "30"})
        responses: queue.Queue[str] = queue.Queue()

        with MCPServer(config=config) as server:
            _initialize(server)
            server.submit_message(
                _call_request(5, "show_issue", {"bug_id": "a1b"}),
                responses.put,
            )
            assert responses.empty()

            start = time.monotonic()
            server.submit_message(self._cancelled(5), responses.put)
            response = json.loads(responses.get(timeout=10))

        assert time.monotonic() - start < 10
        assert response["id"] == 5
        assert response["result"]["isError"] is True
        assert "cancelled" in response["result"]["content"][0]["text"]

    def test_cancel_all_stops_running_calls(self, stub_gitbug: Path):
        config = ServerConfig(gitbug_command=str(stub_gitbug), gitbug_env={"STUB_SLEEP": "30"})
        responses: queue.Queue[str] = queue.Queue()

        with MCPServer(config=config) as server:
            _initialize(server)
            for msg_id in (5, 6):
                server.submit_message(
                    _call_request(msg_id, "delete_issue", {"bug_id": "a1b"}), responses.put
                )
            server.cancel_all()
            results = [json.loads(responses.get(timeout=10)) for _ in range(2)]

        assert sorted(r["id"] for r in results) == [5, 6]
        assert all(r["result"]["isError"] for r in results)

    def test_unknown_request_id_is_ignored(self, initialized_server: MCPServer):
        assert initialized_server.handle_message(self._cancelled(42)) is None
        assert initialized_server.cancel_request(42) is False

    def test_finished_call_cannot_be_cancelled(self, initialized_server: MCPServer):
        _call(initialized_server, "show_issue", {"bug_id": "a"}, msg_id=8)

        assert initialized_server.cancel_request(8) is False


class TestSubmitMessage:
    """Tests for the non-blocking message entry point."""

    def test_answers_ping_before_returning(self, server: MCPServer):
        sent: list[str] = []

        server.submit_message(_request(1, "ping"), sent.append)

        assert [json.loads(s)["result"] for s in sent] == [{}]

    def test_parse_error_is_sent(self, server: MCPServer):
        sent: list[str] = []

        server.submit_message("not json", sent.append)

        assert json.loads(sent[0])["error"]["code"] == -32700

    def test_notification_sends_nothing(self, server: MCPServer):
        sent: list[str] = []

        server.submit_message(
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}), sent.append
        )

        assert sent == []

    def test_tool_call_answered_from_worker(self, initialized_server: MCPServer, recording_client):
        recording_client.output = "a1b2c3d\n"
        responses: queue.Queue[str] = queue.Queue()

        initialized_server.submit_message(
            _call_request(3, "create_issue", {"title": "X", "message": "Y"}), responses.put
        )
        initialized_server.close()

        response = json.loads(responses.get(timeout=5))
        assert response["id"] == 3
        assert response["result"]["structuredContent"]["bug_id"] == "a1b2c3d"
