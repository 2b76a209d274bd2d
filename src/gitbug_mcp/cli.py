"""gitbug-mcp - command line entry point.

Runs the MCP server over stdio: JSON-RPC requests arrive one per line on
stdin, responses leave one per line on stdout, and log lines go to stderr.

Typical MCP client registration::

    {
      "mcpServers": {
        "gitbug": {
          "command": "gitbug-mcp",
          "args": ["--repo", "/path/to/repository"]
        }
      }
    }

git-bug itself must be installed and the repository must already have a
git-bug identity configured (``git bug user new``); the server never
prompts, so commands that would need input fail instead.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from gitbug_mcp import __version__
from gitbug_mcp.config import ConfigLoadError, ServerConfig, load_config
from gitbug_mcp.protocol.transport import StdioTransport
from gitbug_mcp.server import MCPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitbug-mcp",
        description="MCP server exposing git-bug over stdio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: built-in settings)",
    )
    parser.add_argument(
        "--repo",
        "-r",
        type=Path,
        default=None,
        help="Repository git-bug runs in (overrides gitbug.repo_path; default: cwd)",
    )
    parser.add_argument(
        "--git-bug",
        dest="git_bug",
        default=None,
        help="git-bug executable name or path (overrides gitbug.command)",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"gitbug-mcp {__version__}",
    )
    return parser


def load_settings(args: argparse.Namespace) -> ServerConfig:
    """Resolve the configuration from the config file and CLI overrides.

    Raises:
        ConfigLoadError: If the config file is missing or invalid.
    """
    config = load_config(args.config) if args.config is not None else ServerConfig()

    if args.repo is not None:
        if not args.repo.is_dir():
            raise ConfigLoadError(f"Repository path is not a directory: {args.repo}")
        config.gitbug_repo_path = str(args.repo.resolve())
    if args.git_bug:
        config.gitbug_command = args.git_bug
    return config


def serve(server: MCPServer, transport: StdioTransport) -> int:
    """Answer messages until EOF.

    Tool calls run in the background, so a cancellation notification sent
    while one is running still gets read. Closing the server waits for
    calls still running at EOF.

    Returns:
        Exit code (0 on EOF, 130 on interrupt).
    """
    try:
        while True:
            message = transport.read_message()
            if message is None:
                transport.log("EOF received, shutting down")
                return 0

            server.submit_message(message, transport.write_message)
    except KeyboardInterrupt:
        transport.log("Interrupted, shutting down")
        server.cancel_all()
        return 130  # Standard exit code for SIGINT


def main(
    argv: Sequence[str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Run the MCP server.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    transport = StdioTransport(stdin=stdin, stdout=stdout, stderr=stderr)

    try:
        config = load_settings(args)
        server = MCPServer(config=config)
    except (ConfigLoadError, OSError) as e:
        transport.log(f"Error loading server: {e}")
        return 1

    transport.log(f"gitbug-mcp {__version__} started")
    transport.log(f"git-bug command: {config.gitbug_command}")
    transport.log(f"Repository: {config.repo_path or Path.cwd()}")
    if config.audit_log_file:
        transport.log(f"Audit log: {config.audit_log_file}")

    with server:
        try:
            return serve(server, transport)
        except Exception as e:
            transport.log(f"Error: {e}")
            return 1


if __name__ == "__main__":
    sys.exit(main())
