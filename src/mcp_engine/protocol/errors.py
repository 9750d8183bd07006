"""Protocol error codes and the typed error hierarchy.

Every error that can reach a client is a JsonRpcError carrying an explicit
numeric code and optional structured data. The dispatcher serializes these
unchanged; anything else is downgraded to INTERNAL_ERROR at its boundary.
"""

from __future__ import annotations

from typing import Any

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# MCP-specific error codes (reserved range -32000..-32099)
AUTHENTICATION_REQUIRED = -32001
SERVER_NOT_INITIALIZED = -32002
RESOURCE_NOT_FOUND = -32003
RESOURCE_CONFLICT = -32004
CAPABILITY_NOT_SUPPORTED = -32005
TOOL_NOT_FOUND = -32006
TOOL_EXECUTION_FAILED = -32007
INVALID_URI = -32008
PROTOCOL_ERROR = -32009
PERMISSION_DENIED = -32010
REQUEST_CANCELLED = -32011
REQUEST_TIMEOUT = -32012
RATE_LIMIT_EXCEEDED = -32029


class JsonRpcError(Exception):
    """JSON-RPC error with code and message."""

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

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-RPC error object."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class _CodedError(JsonRpcError):
    """JsonRpcError whose code is fixed by the subclass."""

    default_code = INTERNAL_ERROR

    def __init__(self, message: str, data: Any | None = None) -> None:
        super().__init__(self.default_code, message, data)


# Protocol-shape errors


class ParseError(_CodedError):
    default_code = PARSE_ERROR


class InvalidRequestError(_CodedError):
    default_code = INVALID_REQUEST


class MethodNotFoundError(_CodedError):
    default_code = METHOD_NOT_FOUND


class InvalidParamsError(_CodedError):
    default_code = INVALID_PARAMS


class InternalError(_CodedError):
    default_code = INTERNAL_ERROR


# Lifecycle errors


class ServerNotInitializedError(_CodedError):
    default_code = SERVER_NOT_INITIALIZED


class RequestCancelledError(_CodedError):
    default_code = REQUEST_CANCELLED


class RequestTimeoutError(_CodedError):
    default_code = REQUEST_TIMEOUT


# Raised by collaborators outside the core (auth, rate limiting) but carried
# through the same envelope.


class AuthenticationRequiredError(_CodedError):
    default_code = AUTHENTICATION_REQUIRED


class PermissionDeniedError(_CodedError):
    default_code = PERMISSION_DENIED


class RateLimitExceededError(_CodedError):
    default_code = RATE_LIMIT_EXCEEDED


# Domain errors


class ToolNotFoundError(MethodNotFoundError):
    """A tools/call target is not registered.

    Reported as METHOD_NOT_FOUND so clients treat an unknown tool like an
    unknown method.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}", {"name": name})


class PromptNotFoundError(MethodNotFoundError):
    """A prompts/get target is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Prompt not found: {name}", {"name": name})


class ResourceNotFoundError(MethodNotFoundError):
    """No registered resource has the requested URI."""

    def __init__(self, uri: str) -> None:
        super().__init__(f"Resource not found: {uri}", {"uri": uri})


class ResourceConflictError(_CodedError):
    default_code = RESOURCE_CONFLICT


class ToolExecutionFailedError(_CodedError):
    default_code = TOOL_EXECUTION_FAILED


class CapabilityNotSupportedError(_CodedError):
    default_code = CAPABILITY_NOT_SUPPORTED


class NotExecutableError(InternalError):
    """A registry entry offers no way to be executed."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind.capitalize()} is not executable: {name}", {"name": name})
