"""git-bug plugin for the MCP server.

Each tool maps its arguments onto a ``git-bug bug ...`` command line, runs
it through :class:`~gitbug_mcp.runner.GitBugClient` and turns the command's
output into a tool result. Bugs themselves live in git-bug's own storage;
nothing is kept here between calls.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable

from gitbug_mcp import __version__
from gitbug_mcp.plugins.base import PluginBase, ToolDefinition, ToolResult
from gitbug_mcp.runner import GitBugClient, GitBugCommandError

NON_INTERACTIVE_FLAG = "--non-interactive"

# Tool status argument -> git-bug status subcommand
STATUS_SUBCOMMANDS = {
    "open": "open",
    "closed": "close",
}

# =============================================================================
# Tool Schema Definitions
# =============================================================================

_BUG_ID_SCHEMA: dict[str, Any] = {
    "type": "string",
    "description": "The ID of the bug (a unique prefix is enough).",
}

_CREATE_ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "The title of the issue."},
        "message": {
            "type": "string",
            "description": "The description/message of the issue.",
        },
    },
    "required": ["title", "message"],
}

_LIST_ISSUES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "status": {
            "type": "string",
            "description": "Filter by status (open, closed).",
        },
        "author": {"type": "string", "description": "Filter by author."},
        "label": {"type": "string", "description": "Filter by label."},
        "format": {
            "type": "string",
            "description": "Output format (default, plain, id, json).",
        },
        "query": {"type": "string", "description": "Search query string."},
    },
    "required": [],
}

_SHOW_ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "bug_id": _BUG_ID_SCHEMA,
        "format": {
            "type": "string",
            "description": "Output format (default, json, org-mode).",
        },
        "field": {
            "type": "string",
            "description": (
                "Specific field to display (author, authorEmail, createTime, lastEdit, "
                "humanId, id, labels, shortId, status, title, actors, participants)."
            ),
        },
    },
    "required": ["bug_id"],
}

_ADD_COMMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "bug_id": _BUG_ID_SCHEMA,
        "message": {"type": "string", "description": "The comment message."},
    },
    "required": ["bug_id", "message"],
}

# No enum on status: the handler reports invalid values itself
_UPDATE_STATUS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "bug_id": _BUG_ID_SCHEMA,
        "status": {"type": "string", "description": "The new status (open, closed)."},
    },
    "required": ["bug_id", "status"],
}

_UPDATE_TITLE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "bug_id": _BUG_ID_SCHEMA,
        "title": {"type": "string", "description": "The new title for the bug."},
    },
    "required": ["bug_id", "title"],
}

_DELETE_ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "bug_id": _BUG_ID_SCHEMA,
    },
    "required": ["bug_id"],
}

_TOOL_DEFINITIONS: list[ToolDefinition] = [
    ToolDefinition(
        name="create_issue",
        description="Create a new bug in git-bug.",
        input_schema=_CREATE_ISSUE_SCHEMA,
    ),
    ToolDefinition(
        name="list_issues",
        description="List bugs in git-bug with optional filters.",
        input_schema=_LIST_ISSUES_SCHEMA,
    ),
    ToolDefinition(
        name="show_issue",
        description="Display details of a specific bug.",
        input_schema=_SHOW_ISSUE_SCHEMA,
    ),
    ToolDefinition(
        name="add_comment",
        description="Add a comment to a bug.",
        input_schema=_ADD_COMMENT_SCHEMA,
    ),
    ToolDefinition(
        name="update_issue_status",
        description="Update the status of a bug (open/closed).",
        input_schema=_UPDATE_STATUS_SCHEMA,
    ),
    ToolDefinition(
        name="update_issue_title",
        description="Update the title of a bug.",
        input_schema=_UPDATE_TITLE_SCHEMA,
    ),
    ToolDefinition(
        name="delete_issue",
        description="Remove a bug from git-bug.",
        input_schema=_DELETE_ISSUE_SCHEMA,
    ),
]


def _append_flag(args: list[str], flag: str, value: str | None) -> None:
    """Append ``flag value`` to args when value is a non-empty string."""
    if value:
        args.extend([flag, value])


def extract_bug_id(output: str) -> str:
    """Return the last line of git-bug's trimmed output.

    ``git-bug bug new`` reports the new bug's id on its final line.
    """
    # Only "\n" separates lines; other line-break characters stay in the id line
    return output.strip().split("\n")[-1].strip()


# =============================================================================
# Argument vectors
# =============================================================================


def create_issue_args(title: str, message: str) -> list[str]:
    return ["bug", "new", "--title", title, "--message", message, NON_INTERACTIVE_FLAG]


def list_issues_args(
    status: str | None = None,
    author: str | None = None,
    label: str | None = None,
    format: str | None = None,
    query: str | None = None,
) -> list[str]:
    args = ["bug"]
    _append_flag(args, "--status", status)
    _append_flag(args, "--author", author)
    _append_flag(args, "--label", label)
    _append_flag(args, "--format", format)
    if query:
        args.append(query)
    return args


def show_issue_args(bug_id: str, format: str | None = None, field: str | None = None) -> list[str]:
    args = ["bug", "show", bug_id]
    _append_flag(args, "--format", format)
    _append_flag(args, "--field", field)
    return args


def add_comment_args(bug_id: str, message: str) -> list[str]:
    return ["bug", "comment", "new", bug_id, "--message", message, NON_INTERACTIVE_FLAG]


def update_status_args(bug_id: str, status: str) -> list[str]:
    """Build the status change command.

    Raises:
        ValueError: If status is not ``open`` or ``closed``.
    """
    subcommand = STATUS_SUBCOMMANDS.get(status)
    if subcommand is None:
        raise ValueError(f"Invalid status: {status}. Must be 'open' or 'closed'")
    return ["bug", "status", subcommand, bug_id]


def update_title_args(bug_id: str, title: str) -> list[str]:
    return ["bug", "title", "edit", bug_id, "--title", title, NON_INTERACTIVE_FLAG]


def delete_issue_args(bug_id: str) -> list[str]:
    return ["bug", "rm", bug_id]


# =============================================================================
# Plugin
# =============================================================================


class GitBugPlugin(PluginBase):
    """Exposes git-bug's bug commands as MCP tools.

    Attributes:
        client: Runner used for every command; replace it to point the
            plugin at another executable or repository.
    """

    def __init__(self, client: GitBugClient | None = None) -> None:
        """Initialize the plugin.

        Args:
            client: git-bug runner (defaults to ``git-bug`` in the current directory).
        """
        self.client = client or GitBugClient()

    @property
    def name(self) -> str:
        """Return plugin identifier."""
        return "gitbug"

    @property
    def version(self) -> str:
        """Return plugin version."""
        return __version__

    def get_tools(self) -> list[ToolDefinition]:
        """Return the seven git-bug tools."""
        return _TOOL_DEFINITIONS

    def _get_handler_registry(
        self,
    ) -> dict[str, Callable[[dict[str, Any], threading.Event | None], ToolResult]]:
        """Return mapping of tool names to handler methods."""
        return {
            "create_issue": self._create_issue,
            "list_issues": self._list_issues,
            "show_issue": self._show_issue,
            "add_comment": self._add_comment,
            "update_issue_status": self._update_issue_status,
            "update_issue_title": self._update_issue_title,
            "delete_issue": self._delete_issue,
        }

    def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        cancel_event: threading.Event | None = None,
    ) -> ToolResult:
        """Execute a tool.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments.
            cancel_event: Optional event that aborts the running command when set.

        Returns:
            ToolResult with result or error.
        """
        handler = self._get_handler_registry().get(tool_name)
        if handler is None:
            return ToolResult.error(f"Unknown tool: {tool_name}")

        return handler(arguments, cancel_event)

    def _create_issue(
        self, arguments: dict[str, Any], cancel_event: threading.Event | None
    ) -> ToolResult:
        title = arguments["title"]
        try:
            output = self.client.run(
                *create_issue_args(title, arguments["message"]), cancel_event=cancel_event
            )
        except GitBugCommandError as e:
            return ToolResult.error(f"Failed to create issue: {e}")

        bug_id = extract_bug_id(output)
        return ToolResult.text(
            f"Created issue: {title}\n{bug_id}",
            {
                "success": True,
                "message": "Issue created successfully",
                "title": title,
                "bug_id": bug_id,
                "output": output.strip(),
            },
        )

    def _list_issues(
        self, arguments: dict[str, Any], cancel_event: threading.Event | None
    ) -> ToolResult:
        filters = {
            key: arguments.get(key) or ""
            for key in ("status", "author", "label", "format", "query")
        }
        try:
            output = self.client.run(*list_issues_args(**filters), cancel_event=cancel_event)
        except GitBugCommandError as e:
            return ToolResult.error(f"Failed to list issues: {e}")

        return ToolResult.text(
            output,
            {"success": True, "issues": output.strip(), "filters": filters},
        )

    def _show_issue(
        self, arguments: dict[str, Any], cancel_event: threading.Event | None
    ) -> ToolResult:
        bug_id = arguments["bug_id"]
        format = arguments.get("format") or ""
        field = arguments.get("field") or ""
        try:
            output = self.client.run(
                *show_issue_args(bug_id, format, field), cancel_event=cancel_event
            )
        except GitBugCommandError as e:
            return ToolResult.error(f"Failed to show issue {bug_id}: {e}")

        return ToolResult.text(
            output,
            {
                "success": True,
                "bug_id": bug_id,
                "details": output.strip(),
                "format": format,
                "field": field,
            },
        )

    def _add_comment(
        self, arguments: dict[str, Any], cancel_event: threading.Event | None
    ) -> ToolResult:
        bug_id = arguments["bug_id"]
        try:
            output = self.client.run(
                *add_comment_args(bug_id, arguments["message"]), cancel_event=cancel_event
            )
        except GitBugCommandError as e:
            return ToolResult.error(f"Failed to add comment to bug {bug_id}: {e}")

        return ToolResult.text(
            f"Added comment to bug {bug_id}",
            {
                "success": True,
                "bug_id": bug_id,
                "message": "Comment added successfully",
                "output": output.strip(),
            },
        )

    def _update_issue_status(
        self, arguments: dict[str, Any], cancel_event: threading.Event | None
    ) -> ToolResult:
        bug_id = arguments["bug_id"]
        status = arguments["status"]
        try:
            args = update_status_args(bug_id, status)
        except ValueError as e:
            return ToolResult.error(str(e))

        try:
            output = self.client.run(*args, cancel_event=cancel_event)
        except GitBugCommandError as e:
            return ToolResult.error(f"Failed to update status of bug {bug_id}: {e}")

        return ToolResult.text(
            f"Updated bug {bug_id} status to {status}",
            {
                "success": True,
                "bug_id": bug_id,
                "new_status": status,
                "message": f"Bug status updated to {status}",
                "output": output.strip(),
            },
        )

    def _update_issue_title(
        self, arguments: dict[str, Any], cancel_event: threading.Event | None
    ) -> ToolResult:
        bug_id = arguments["bug_id"]
        title = arguments["title"]
        try:
            output = self.client.run(*update_title_args(bug_id, title), cancel_event=cancel_event)
        except GitBugCommandError as e:
            return ToolResult.error(f"Failed to update title of bug {bug_id}: {e}")

        return ToolResult.text(
            f"Updated bug {bug_id} title to: {title}",
            {
                "success": True,
                "bug_id": bug_id,
                "new_title": title,
                "message": "Bug title updated successfully",
                "output": output.strip(),
            },
        )

    def _delete_issue(
        self, arguments: dict[str, Any], cancel_event: threading.Event | None
    ) -> ToolResult:
        bug_id = arguments["bug_id"]
        try:
            output = self.client.run(*delete_issue_args(bug_id), cancel_event=cancel_event)
        except GitBugCommandError as e:
            return ToolResult.error(f"Failed to delete bug {bug_id}: {e}")

        return ToolResult.text(
            f"Deleted bug {bug_id}",
            {
                "success": True,
                "bug_id": bug_id,
                "message": "Bug deleted successfully",
                "output": output.strip(),
            },
        )
