"""Runs the git-bug executable.

Every invocation gets ``GIT_BUG_NON_INTERACTIVE=1`` so git-bug never stops
to prompt, and stdout/stderr are captured as a single stream, decoded as
UTF-8 with undecodable bytes replaced.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import threading

DEFAULT_COMMAND = "git-bug"
NON_INTERACTIVE_ENV = "GIT_BUG_NON_INTERACTIVE"

# How often a running command checks its cancel event, in seconds
CANCEL_POLL_INTERVAL = 0.1


class GitBugCommandError(Exception):
    """A git-bug invocation that did not succeed.

    Attributes:
        reason: Short description (``exit status N``, an OS error, ``cancelled``).
        output: Combined stdout/stderr captured before the failure.
        returncode: Exit status, or None if the process never ran to completion.
    """

    def __init__(self, reason: str, output: str = "", returncode: int | None = None) -> None:
        super().__init__(f"git-bug command failed: {reason}, output: {output}")
        self.reason = reason
        self.output = output
        self.returncode = returncode


class GitBugClient:
    """Launches git-bug with a fixed environment and working directory."""

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            command: Executable name (looked up on PATH) or path.
            cwd: Repository directory to run in (defaults to the process cwd).
            env: Extra environment variables layered over os.environ.
        """
        self.command = command
        self.cwd = Path(cwd) if cwd is not None else None
        self.extra_env = dict(env or {})

    def build_env(self) -> dict[str, str]:
        """Return the environment for a git-bug child process."""
        env = dict(os.environ)
        env.update(self.extra_env)
        env[NON_INTERACTIVE_ENV] = "1"
        return env

    def build_argv(self, *args: str) -> list[str]:
        """Return the full command line: the executable followed by args."""
        return [self.command, *args]

    def run(self, *args: str, cancel_event: threading.Event | None = None) -> str:
        """Run git-bug and return its combined output.

        Args:
            *args: Arguments following the executable name.
            cancel_event: When set while the command is running, the child
                is killed and the call fails.

        Returns:
            Combined stdout/stderr, untrimmed.

        Raises:
            GitBugCommandError: On launch failure, non-zero exit or cancellation.
        """
        if cancel_event is not None and cancel_event.is_set():
            raise GitBugCommandError("cancelled")

        try:
            proc = subprocess.Popen(
                self.build_argv(*args),
                cwd=self.cwd,
                env=self.build_env(),
                stdin=subprocess.DEVNULL,  # never inherit the MCP stdin
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise GitBugCommandError(str(e)) from e

        output = self._wait(proc, cancel_event)

        if proc.returncode != 0:
            raise GitBugCommandError(
                f"exit status {proc.returncode}", output=output, returncode=proc.returncode
            )
        return output

    def _wait(self, proc: subprocess.Popen[str], cancel_event: threading.Event | None) -> str:
        timeout = CANCEL_POLL_INTERVAL if cancel_event is not None else None
        try:
            while True:
                try:
                    output, _ = proc.communicate(timeout=timeout)
                    return output or ""
                except subprocess.TimeoutExpired:
                    if cancel_event is not None and cancel_event.is_set():
                        proc.kill()
                        output, _ = proc.communicate()
                        raise GitBugCommandError(
                            "cancelled", output=output or "", returncode=proc.returncode
                        ) from None
        except KeyboardInterrupt:
            proc.kill()
            proc.wait()
            raise
