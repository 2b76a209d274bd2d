"""Shared fixtures: a stub git-bug executable and a recording client."""

from __future__ import annotations

import stat
import sys
import threading
from pathlib import Path

import pytest

from gitbug_mcp.runner import GitBugClient, GitBugCommandError

STUB_SOURCE = """\
#!{python}
import json
import os
import sys
import time

if os.environ.get("STUB_SLEEP"):
    time.sleep(float(os.environ["STUB_SLEEP"]))

if "STUB_STDOUT_HEX" in os.environ:
    sys.stdout.buffer.write(bytes.fromhex(os.environ["STUB_STDOUT_HEX"]))
elif "STUB_STDOUT" in os.environ:
    sys.stdout.write(os.environ["STUB_STDOUT"])
else:
    sys.stdout.write(json.dumps({{
        "args": sys.argv[1:],
        "non_interactive": os.environ.get("GIT_BUG_NON_INTERACTIVE"),
        "cwd": os.getcwd(),
    }}) + "\\n")
sys.stdout.flush()

if os.environ.get("STUB_STDERR"):
    sys.stderr.write(os.environ["STUB_STDERR"])
    sys.stderr.flush()

sys.exit(int(os.environ.get("STUB_EXIT", "0")))
"""


@pytest.fixture
def stub_gitbug(tmp_path: Path) -> Path:
    """Write an executable that stands in for git-bug.

    By default it prints its arguments, GIT_BUG_NON_INTERACTIVE and cwd as
    one JSON line. STUB_STDOUT (or raw bytes as STUB_STDOUT_HEX), STUB_STDERR,
    STUB_EXIT and STUB_SLEEP change its behaviour.
    """
    path = tmp_path / "bin" / "git-bug"
    path.parent.mkdir()
    path.write_text(STUB_SOURCE.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class RecordingClient(GitBugClient):
    """GitBugClient that records argument vectors instead of running them."""

    def __init__(self, output: str = "", error: GitBugCommandError | None = None) -> None:
        super().__init__()
        self.output = output
        self.error = error
        self.calls: list[list[str]] = []
        self.cancel_events: list[threading.Event | None] = []

    def run(self, *args: str, cancel_event: threading.Event | None = None) -> str:
        self.calls.append(list(args))
        self.cancel_events.append(cancel_event)
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()
