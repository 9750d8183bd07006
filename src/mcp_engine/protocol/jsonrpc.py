"""JSON-RPC 2.0 message parsing and formatting.

Implements the JSON-RPC 2.0 message shapes used by the MCP protocol. All
functions here are pure: they never touch sessions, registries or transports.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mcp_engine.protocol.errors import InvalidParamsError, InvalidRequestError, ParseError

JSONRPC_VERSION = "2.0"

# Maximum message size (1 MB)
MAX_MESSAGE_SIZE = 1_048_576


class MessageKind(Enum):
    """Classification of a decoded JSON-RPC payload."""

    REQUEST = "request"
    NOTIFICATION = "notification"
    RESPONSE = "response"
    INVALID = "invalid"


@dataclass
class JsonRpcRequest:
    """Represents a JSON-RPC request (has id)."""

    id: int | str
    method: str
    params: dict[str, Any] | list[Any] | None = None


@dataclass
class JsonRpcNotification:
    """Represents a JSON-RPC notification (no id)."""

    method: str
    params: dict[str, Any] | list[Any] | None = None


@dataclass
class JsonRpcResponse:
    """Represents a JSON-RPC response (result XOR error)."""

    id: int | str
    result: Any = None
    error: dict[str, Any] | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


JsonRpcMessage = JsonRpcRequest | JsonRpcNotification | JsonRpcResponse


def decode(raw: str | bytes) -> Any:
    """Decode a raw frame into a JSON value.

    Args:
        raw: Raw JSON text or UTF-8 bytes.

    Returns:
        The decoded payload (normally a dict, or a list for batches).

    Raises:
        ParseError: If the frame is too large, not UTF-8, or not valid JSON.
    """
    # Check message size before parsing to prevent DoS
    if len(raw) > MAX_MESSAGE_SIZE:
        raise ParseError(f"Message too large: {len(raw)} bytes exceeds {MAX_MESSAGE_SIZE} limit")

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Parse error: {e}") from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Parse error: {e}") from e


def _is_valid_id(value: Any) -> bool:
    # bool is a subclass of int but never a valid id
    return isinstance(value, str) or (isinstance(value, int) and not isinstance(value, bool))


def classify(message: Any) -> MessageKind:
    """Classify a decoded payload as exactly one message kind.

    Args:
        message: Decoded JSON value.

    Returns:
        The matching MessageKind; INVALID when no variant matches.
    """
    if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
        return MessageKind.INVALID

    has_id = message.get("id") is not None
    has_result = "result" in message
    has_error = "error" in message

    if "method" in message:
        method = message["method"]
        if not isinstance(method, str) or not method or has_result or has_error:
            return MessageKind.INVALID
        if not has_id:
            return MessageKind.NOTIFICATION
        return MessageKind.REQUEST if _is_valid_id(message["id"]) else MessageKind.INVALID

    if has_id and _is_valid_id(message["id"]) and has_result != has_error:
        if has_error and not isinstance(message["error"], dict):
            return MessageKind.INVALID
        return MessageKind.RESPONSE

    return MessageKind.INVALID


def parse_message(message: Any) -> JsonRpcMessage:
    """Convert a decoded payload into a typed message.

    Args:
        message: Decoded JSON value.

    Returns:
        Parsed request, notification or response.

    Raises:
        InvalidRequestError: If the payload matches no message shape.
    """
    kind = classify(message)
    if kind is MessageKind.REQUEST:
        return JsonRpcRequest(id=message["id"], method=message["method"], params=message.get("params"))
    if kind is MessageKind.NOTIFICATION:
        return JsonRpcNotification(method=message["method"], params=message.get("params"))
    if kind is MessageKind.RESPONSE:
        return JsonRpcResponse(
            id=message["id"], result=message.get("result"), error=message.get("error")
        )
    raise InvalidRequestError("Invalid Request")


def validate_params(params: Any) -> None:
    """Check that params, when present, are structured.

    Raises:
        InvalidParamsError: If params is neither an array nor an object.
    """
    if params is not None and not isinstance(params, dict | list):
        raise InvalidParamsError("Invalid params: must be an array or an object")


def build_request(
    method: str,
    params: dict[str, Any] | list[Any] | None = None,
    msg_id: int | str | None = None,
) -> dict[str, Any]:
    """Build a request, or a notification when no id is given.

    Args:
        method: Method name.
        params: Optional parameters.
        msg_id: Request ID; None produces a notification.

    Returns:
        Message dictionary.
    """
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    if msg_id is not None:
        message["id"] = msg_id
    return message


def build_notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build a notification (server to client)."""
    return build_request(method, params)


def build_success(result: Any, msg_id: int | str | None) -> dict[str, Any]:
    """Build a successful response.

    Args:
        result: Result payload.
        msg_id: Request ID to echo back.

    Returns:
        Response dictionary.
    """
    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result}


def build_error(
    code: int,
    message: str,
    data: Any | None = None,
    msg_id: int | str | None = None,
) -> dict[str, Any]:
    """Build an error response.

    Args:
        code: Error code.
        message: Error message.
        data: Optional error data.
        msg_id: Request ID (or None when it could not be determined).

    Returns:
        Response dictionary.
    """
    error_obj: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error_obj["data"] = data

    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "error": error_obj}


def encode(message: dict[str, Any] | list[dict[str, Any]]) -> str:
    """Serialize a message (or batch) to a single-line JSON frame."""
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False)
