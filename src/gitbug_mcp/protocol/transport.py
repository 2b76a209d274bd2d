"""Line-delimited stdio transport.

stdout carries protocol messages only; anything meant for a human goes to
stderr through ``log``.
"""

from __future__ import annotations

import sys
import threading
from typing import TextIO

LOG_PREFIX = "[gitbug-mcp]"


class StdioTransport:
    """Reads JSON-RPC lines from stdin and writes responses to stdout."""

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            stdin: Input stream (defaults to sys.stdin).
            stdout: Output stream (defaults to sys.stdout).
            stderr: Log stream (defaults to sys.stderr).
        """
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._write_lock = threading.Lock()

    def read_message(self) -> str | None:
        """Return the next non-blank line, stripped, or None at EOF."""
        for line in iter(self._stdin.readline, ""):
            line = line.strip()
            if line:
                return line
        return None

    def write_message(self, message: str) -> None:
        """Write one message line and flush.

        Safe to call from tool-call worker threads.

        Args:
            message: Serialized JSON-RPC message.
        """
        with self._write_lock:
            self._stdout.write(message + "\n")
            self._stdout.flush()

    def log(self, message: str) -> None:
        """Write a log line to stderr."""
        self._stderr.write(f"{LOG_PREFIX} {message}\n")
        self._stderr.flush()
