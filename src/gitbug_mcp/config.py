"""Server configuration loaded from YAML.

Every setting has a default, so the server runs without a config file.
String values may reference environment variables as ``${NAME}``.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gitbug_mcp.runner import DEFAULT_COMMAND

DEFAULT_MAX_STRING_LENGTH = 100_000

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ConfigLoadError(Exception):
    """Raised when the config file cannot be read or is malformed."""

    pass


def expand_env_vars(value: str) -> str:
    """Expand ``${VAR_NAME}`` references in a string.

    Unknown variables are left unchanged; ``${HOME}`` falls back to the
    user's home directory when the variable is unset.

    Args:
        value: String potentially containing environment variable references.

    Returns:
        String with known environment variables expanded.
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if var_name == "HOME":
            return os.path.expanduser("~")
        return match.group(0)

    return _ENV_VAR_PATTERN.sub(replacer, value)


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigLoadError(f"'{name}' must be a mapping")
    return value


@dataclass
class ServerConfig:
    """Runtime settings for the server and its git-bug runner."""

    version: str = "1.0"

    # git-bug settings
    gitbug_command: str = DEFAULT_COMMAND
    gitbug_repo_path: str = ""
    gitbug_env: dict[str, str] = field(default_factory=dict)

    # Tool settings; no rate limits unless configured
    tool_rate_limits: dict[str, int] = field(default_factory=dict)
    max_string_length: int = DEFAULT_MAX_STRING_LENGTH

    # Audit settings
    audit_log_file: str = ""

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> ServerConfig:
        """Build a ServerConfig from a parsed YAML mapping.

        Raises:
            ConfigLoadError: If a section has the wrong shape.
        """
        gitbug = _section(config, "gitbug")
        tools = _section(config, "tools")
        audit = _section(config, "audit")

        env = gitbug.get("env") or {}
        if not isinstance(env, dict):
            raise ConfigLoadError("'gitbug.env' must be a mapping")

        rate_limits = tools.get("rate_limits") or {}
        if not isinstance(rate_limits, dict):
            raise ConfigLoadError("'tools.rate_limits' must be a mapping")

        return cls(
            version=str(config.get("version", "")),
            gitbug_command=expand_env_vars(str(gitbug.get("command") or DEFAULT_COMMAND)),
            gitbug_repo_path=expand_env_vars(str(gitbug.get("repo_path") or "")),
            gitbug_env={str(k): expand_env_vars(str(v)) for k, v in env.items()},
            tool_rate_limits={str(k): int(v) for k, v in rate_limits.items()},
            max_string_length=int(tools.get("max_string_length", DEFAULT_MAX_STRING_LENGTH)),
            audit_log_file=expand_env_vars(str(audit.get("log_file") or "")),
        )

    def get_rate_limit(self, tool_name: str) -> int | None:
        """Return the calls-per-minute limit for a tool.

        Falls back to the ``default`` entry; None means the tool is not
        rate limited.
        """
        return self.tool_rate_limits.get(tool_name, self.tool_rate_limits.get("default"))

    @property
    def repo_path(self) -> Path | None:
        """The git-bug working directory, or None for the process cwd."""
        return Path(self.gitbug_repo_path) if self.gitbug_repo_path else None


def load_config(path: Path) -> ServerConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        ServerConfig instance.

    Raises:
        ConfigLoadError: If the file cannot be found, parsed, or validated.
    """
    if not path.exists():
        raise ConfigLoadError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse config YAML: {e}") from e

    if not isinstance(config, dict):
        raise ConfigLoadError("Config must be a YAML mapping")

    if "version" not in config:
        raise ConfigLoadError("Config must include 'version' field")

    try:
        return ServerConfig.from_dict(config)
    except (TypeError, ValueError) as e:
        raise ConfigLoadError(f"Invalid config value: {e}") from e
