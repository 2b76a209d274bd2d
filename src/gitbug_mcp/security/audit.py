"""Audit log for tool calls.

Append-only JSON Lines: one ``request`` and one ``response`` line per tool
call, plus ``security`` lines for refused calls. Each line is flushed as
soon as it is written.
"""

from __future__ import annotations

import json
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Argument keys whose values never reach the log
SENSITIVE_PATTERNS = [
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"secret", re.IGNORECASE),
    re.compile(r"api[_-]?key", re.IGNORECASE),
    re.compile(r"token", re.IGNORECASE),
    re.compile(r"auth(?!or)", re.IGNORECASE),
    re.compile(r"credential", re.IGNORECASE),
]

REDACTED = "[REDACTED]"


def _is_sensitive_key(key: str) -> bool:
    return any(pattern.search(key) for pattern in SENSITIVE_PATTERNS)


def sanitize_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of arguments with sensitive values redacted.

    Nested mappings are sanitized recursively.
    """
    sanitized: dict[str, Any] = {}
    for key, value in arguments.items():
        if _is_sensitive_key(key):
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize_arguments(value)
        else:
            sanitized[key] = value
    return sanitized


def _get_timestamp() -> str:
    """Current UTC time in ISO 8601 with a ``Z`` suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class AuditLogger:
    """Writes audit events to a JSON Lines file."""

    def __init__(self, log_path: Path) -> None:
        """Open (or create) the log file in append mode.

        Args:
            log_path: Path to the audit log file; parent directories are created.
        """
        self._log_path = log_path
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(log_path, "a", encoding="utf-8")  # noqa: SIM115
        self._lock = threading.Lock()

    def _write_line(self, data: dict[str, Any]) -> None:
        with self._lock:
            self._file.write(json.dumps(data) + "\n")
            self._file.flush()

    def log_request(self, request_id: str, tool_name: str, arguments: dict[str, Any]) -> None:
        """Log an incoming tool call.

        Args:
            request_id: Identifier correlating request and response lines.
            tool_name: Name of the tool being invoked.
            arguments: Tool arguments (sanitized before writing).
        """
        self._write_line(
            {
                "type": "request",
                "timestamp": _get_timestamp(),
                "request_id": request_id,
                "tool_name": tool_name,
                "arguments": sanitize_arguments(arguments),
            }
        )

    def log_response(self, request_id: str, status: str, duration_ms: float) -> None:
        """Log the outcome of a tool call.

        Args:
            request_id: Request identifier to correlate with.
            status: ``success`` or ``error``.
            duration_ms: Execution time in milliseconds.
        """
        self._write_line(
            {
                "type": "response",
                "timestamp": _get_timestamp(),
                "request_id": request_id,
                "result_status": status,
                "execution_time_ms": duration_ms,
            }
        )

    def log_security_event(self, event_type: str, details: dict[str, Any]) -> None:
        """Log a refused call (rate limit, validation failure)."""
        self._write_line(
            {
                "type": "security",
                "timestamp": _get_timestamp(),
                "event_type": event_type,
                "details": details,
            }
        )

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()

    def __enter__(self) -> AuditLogger:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
