"""Security engine: the checks every tool call passes through.

Combines input validation, rate limiting and audit logging behind one
object owned by the server.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

from gitbug_mcp.config import ServerConfig
from gitbug_mcp.security.audit import AuditLogger
from gitbug_mcp.security.ratelimiter import RateLimiter
from gitbug_mcp.security.ratelimiter import RateLimitExceeded as RateLimitExceeded  # Re-export
from gitbug_mcp.security.validator import InputValidator, ValidationError


class SecurityViolation(Exception):
    """Raised when a tool call is refused by the security layer."""

    pass


class SecurityEngine:
    """Validation, rate limiting and audit logging for tool calls."""

    def __init__(
        self,
        config: ServerConfig,
        rate_limit_window_seconds: float = 60.0,
    ) -> None:
        """Initialize the security engine.

        Args:
            config: Server configuration (rate limits, string cap, audit log path).
            rate_limit_window_seconds: Time window for rate limiting.
        """
        self._config = config
        self._validator = InputValidator(max_string_length=config.max_string_length)
        self._rate_limiter = RateLimiter(window_seconds=rate_limit_window_seconds)

        if config.audit_log_file:
            self._audit_logger: AuditLogger | None = AuditLogger(Path(config.audit_log_file))
        else:
            self._audit_logger = None

    def validate_input(
        self, tool_name: str, schema: dict[str, Any], arguments: dict[str, Any]
    ) -> dict[str, Any]:
        """Validate tool input against its schema.

        Args:
            tool_name: Name of the tool.
            schema: JSON Schema for validation.
            arguments: Arguments to validate.

        Returns:
            The validated arguments.

        Raises:
            SecurityViolation: If validation fails.
        """
        try:
            return self._validator.validate_tool_input(tool_name, schema, arguments)
        except ValidationError as e:
            self._log_security_event(
                "input_validation_failed",
                {"tool": tool_name, "reason": str(e)},
            )
            raise SecurityViolation(f"Input validation failed: {e}") from e

    def check_rate_limit(self, tool_name: str) -> None:
        """Record a call to a tool, refusing it if over the limit.

        Tools without a configured limit are never refused.

        Raises:
            RateLimitExceeded: If rate limit is exceeded.
        """
        limit = self._config.get_rate_limit(tool_name)
        if limit is None:
            return

        try:
            self._rate_limiter.check_rate_limit(tool_name, limit)
        except RateLimitExceeded:
            self._log_security_event(
                "rate_limit_exceeded",
                {
                    "tool": tool_name,
                    "limit": limit,
                    "window_seconds": self._rate_limiter.window_seconds,
                },
            )
            raise

    def log_tool_execution(
        self, request_id: str, tool_name: str, arguments: dict[str, Any]
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_request(request_id, tool_name, arguments)

    def log_tool_result(self, request_id: str, status: str, duration_ms: float) -> None:
        if self._audit_logger:
            self._audit_logger.log_response(request_id, status, duration_ms)

    def _log_security_event(self, event_type: str, details: dict[str, Any]) -> None:
        if self._audit_logger:
            self._audit_logger.log_security_event(event_type, details)

    def generate_request_id(self) -> str:
        return str(uuid.uuid4())

    def close(self) -> None:
        """Close the audit log."""
        if self._audit_logger:
            self._audit_logger.close()

    def __enter__(self) -> SecurityEngine:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
