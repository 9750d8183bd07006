"""MCP Protocol layer for JSON-RPC communication."""

from mcp_engine.protocol.capabilities import (
    CapabilityNegotiator,
    NegotiatedCapabilities,
    capability_summary,
    merge_config,
)
from mcp_engine.protocol.dispatcher import RequestContext, RequestDispatcher
from mcp_engine.protocol.errors import JsonRpcError
from mcp_engine.protocol.jsonrpc import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    MessageKind,
    build_error,
    build_notification,
    build_request,
    build_success,
    classify,
    decode,
    encode,
    parse_message,
)
from mcp_engine.protocol.lifecycle import (
    MCP_PROTOCOL_VERSION,
    LifecycleState,
    ProtocolSession,
)
from mcp_engine.protocol.transport import (
    StdioTransport,
    Transport,
    TransportError,
    WebhookTransport,
    format_sse_event,
)

__all__ = [
    "CapabilityNegotiator",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "LifecycleState",
    "MCP_PROTOCOL_VERSION",
    "MessageKind",
    "NegotiatedCapabilities",
    "ProtocolSession",
    "RequestContext",
    "RequestDispatcher",
    "StdioTransport",
    "Transport",
    "TransportError",
    "WebhookTransport",
    "build_error",
    "build_notification",
    "build_request",
    "build_success",
    "capability_summary",
    "classify",
    "decode",
    "encode",
    "format_sse_event",
    "merge_config",
    "parse_message",
]
