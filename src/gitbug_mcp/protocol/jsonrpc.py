"""JSON-RPC 2.0 framing for the MCP stdio protocol.

Only the subset MCP needs: single (non-batch) requests and notifications
from the client, and responses / error responses back to it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Upper bound on a single incoming line (1 MiB)
MAX_MESSAGE_SIZE = 1_048_576


class JsonRpcError(Exception):
    """A protocol-level failure that maps to a JSON-RPC error response."""

    def __init__(self, code: int, message: str, data: Any | None = None) -> None:
        """Initialize the error.

        Args:
            code: JSON-RPC error code.
            message: Human-readable error message.
            data: Optional additional error data.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


@dataclass
class JsonRpcRequest:
    """A client request; expects exactly one response with the same id."""

    id: int | str
    method: str
    params: dict[str, Any] | None = None


@dataclass
class JsonRpcNotification:
    """A client notification; never answered."""

    method: str
    params: dict[str, Any] | None = None


def _invalid(reason: str) -> JsonRpcError:
    return JsonRpcError(INVALID_REQUEST, f"Invalid Request: {reason}")


def parse_message(raw: str) -> JsonRpcRequest | JsonRpcNotification:
    """Parse one line received from the client.

    Args:
        raw: Raw JSON text.

    Returns:
        A request (message carries an ``id``) or a notification.

    Raises:
        JsonRpcError: If the text is not a well-formed JSON-RPC 2.0 message.
    """
    if len(raw) > MAX_MESSAGE_SIZE:
        raise JsonRpcError(
            PARSE_ERROR, f"Message too large: {len(raw)} bytes exceeds {MAX_MESSAGE_SIZE} limit"
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise JsonRpcError(PARSE_ERROR, f"Parse error: {e}") from e

    if not isinstance(data, dict):
        raise _invalid("message must be an object")

    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise _invalid("jsonrpc must be '2.0'")

    method = data.get("method")
    if not isinstance(method, str):
        raise _invalid("method must be a string")

    params = data.get("params")
    if params is not None and not isinstance(params, dict):
        raise _invalid("params must be an object")

    if "id" not in data:
        return JsonRpcNotification(method=method, params=params)

    msg_id = data["id"]
    # bool is an int subclass but not a valid id
    if isinstance(msg_id, bool) or not isinstance(msg_id, int | str):
        raise _invalid("id must be integer or string")
    return JsonRpcRequest(id=msg_id, method=method, params=params)


def format_response(msg_id: int | str, result: Any) -> str:
    """Serialize a successful response.

    Args:
        msg_id: Id of the request being answered.
        result: Result payload.

    Returns:
        JSON string.
    """
    return json.dumps({"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result})


def format_error(
    msg_id: int | str | None,
    code: int,
    message: str,
    data: Any | None = None,
) -> str:
    """Serialize an error response.

    Args:
        msg_id: Id of the request being answered, or None when it could not
            be determined (parse errors).
        code: Error code.
        message: Error message.
        data: Optional error data.

    Returns:
        JSON string.
    """
    error_obj: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error_obj["data"] = data

    return json.dumps({"jsonrpc": JSONRPC_VERSION, "id": msg_id, "error": error_obj})
