"""Tool argument validation.

Arguments are checked against the tool's JSON Schema before any handler
runs, so handlers can index required fields directly.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError


class ValidationError(Exception):
    """Raised when tool arguments do not satisfy the tool's schema."""

    pass


class InputValidator:
    """Validates tool arguments against JSON Schema (Draft 2020-12).

    On top of the schema, every string argument is capped at
    ``max_string_length`` characters; git-bug receives them as argv entries.
    """

    def __init__(self, max_string_length: int = 100_000) -> None:
        self._max_string_length = max_string_length

    def _check_lengths(self, value: Any, field: str) -> None:
        if isinstance(value, str):
            if len(value) > self._max_string_length:
                raise ValidationError(
                    f"Field '{field}' exceeds maximum length of {self._max_string_length}"
                )
        elif isinstance(value, dict):
            for key, item in value.items():
                self._check_lengths(item, f"{field}.{key}" if field else str(key))
        elif isinstance(value, list):
            for i, item in enumerate(value):
                self._check_lengths(item, f"{field}[{i}]")

    def validate_tool_input(
        self, tool_name: str, schema: dict[str, Any], arguments: dict[str, Any]
    ) -> dict[str, Any]:
        """Validate tool input.

        Args:
            tool_name: Name of the tool (for error messages).
            schema: JSON Schema for the tool's input.
            arguments: Arguments to validate.

        Returns:
            The arguments, unchanged.

        Raises:
            ValidationError: If validation fails.
        """
        try:
            Draft202012Validator.check_schema(schema)
        except SchemaError as e:
            raise ValidationError(f"Invalid schema for tool {tool_name}: {e.message}") from e

        errors = list(Draft202012Validator(schema).iter_errors(arguments))
        if errors:
            # Report first error
            error = errors[0]
            path = ".".join(str(p) for p in error.path) if error.path else "root"
            raise ValidationError(f"Schema validation failed at '{path}': {error.message}")

        self._check_lengths(arguments, "")
        return arguments
