"""MCP lifecycle management.

Handles the initialize/initialized handshake and tracks per-connection state.
One ProtocolSession exists per connection and is never shared.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from jsonschema import Draft202012Validator

from mcp_engine.protocol.capabilities import CapabilityNegotiator, NegotiatedCapabilities
from mcp_engine.protocol.errors import (
    InvalidParamsError,
    InvalidRequestError,
    ServerNotInitializedError,
)

logger = logging.getLogger(__name__)

# Supported MCP protocol versions (oldest first)
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")
# Default version to advertise
MCP_PROTOCOL_VERSION = "2024-11-05"

# Methods that may run before the handshake completes
PRE_INIT_METHODS = frozenset({"initialize", "ping"})

INITIALIZE_PARAMS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "protocolVersion": {"type": "string"},
        "capabilities": {"type": "object"},
        "clientInfo": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "version": {"type": "string"},
            },
        },
    },
    "required": ["protocolVersion"],
}

_initialize_validator = Draft202012Validator(INITIALIZE_PARAMS_SCHEMA)


class LifecycleState(Enum):
    """MCP connection lifecycle states."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


class ProtocolSession:
    """Per-connection protocol state machine.

    Transitions::

        UNINITIALIZED --initialize--> INITIALIZING --initialized--> READY
              any state --close()--> CLOSED

    Shared fields are guarded by a single re-entrant lock so that a
    request/response transport may serve concurrent calls on one session.
    """

    def __init__(
        self,
        negotiator: CapabilityNegotiator,
        server_capabilities: Mapping[str, Any],
        server_info: Mapping[str, str],
        *,
        supported_versions: Sequence[str] = SUPPORTED_PROTOCOL_VERSIONS,
        default_version: str = MCP_PROTOCOL_VERSION,
        instructions: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            negotiator: Capability negotiator shared by all sessions.
            server_capabilities: Capabilities declared by the server.
            server_info: Server ``name``/``version`` for the handshake.
            supported_versions: Protocol versions the server accepts.
            default_version: Version returned when the client's is unsupported.
            instructions: Optional usage instructions sent to the client.
        """
        self._negotiator = negotiator
        self._server_capabilities = server_capabilities
        self._server_info = dict(server_info)
        self._supported_versions = tuple(supported_versions)
        self._default_version = default_version
        self._instructions = instructions
        self._lock = threading.RLock()

        self.state = LifecycleState.UNINITIALIZED
        self.client_info: dict[str, Any] | None = None
        self.client_capabilities: dict[str, Any] | None = None
        self.protocol_version: str | None = None
        self._negotiated: NegotiatedCapabilities | None = None

    @property
    def is_ready(self) -> bool:
        """Check if the connection is ready for operations."""
        return self.state == LifecycleState.READY

    @property
    def is_closed(self) -> bool:
        return self.state == LifecycleState.CLOSED

    @property
    def server_info(self) -> dict[str, str]:
        return dict(self._server_info)

    @property
    def negotiated_capabilities(self) -> NegotiatedCapabilities | None:
        """Capabilities agreed during the handshake, or None before it."""
        return self._negotiated

    def require_ready(self, method: str) -> None:
        """Assert that ``method`` may run in the current state.

        Args:
            method: Requested method name.

        Raises:
            ServerNotInitializedError: If the method needs a READY session.
        """
        if method in PRE_INIT_METHODS:
            return
        with self._lock:
            if self.state == LifecycleState.CLOSED:
                raise ServerNotInitializedError("Session is closed")
            if self.state != LifecycleState.READY:
                raise ServerNotInitializedError(
                    f"Server not initialized: '{method}' requires a completed handshake"
                )

    def handle_initialize(self, params: Any) -> dict[str, Any]:
        """Handle initialize request.

        Args:
            params: Initialize request parameters.

        Returns:
            Initialize response result.

        Raises:
            InvalidParamsError: If the parameters are malformed.
            InvalidRequestError: If the session was already initialized or closed.
        """
        errors = sorted(_initialize_validator.iter_errors(params), key=lambda e: list(e.path))
        if errors:
            raise InvalidParamsError(
                "Invalid initialize params", {"errors": [e.message for e in errors]}
            )

        with self._lock:
            if self.state == LifecycleState.CLOSED:
                raise InvalidRequestError("Session is closed")
            if self.state != LifecycleState.UNINITIALIZED:
                raise InvalidRequestError("Server already initialized")

            requested_version = params["protocolVersion"]
            if requested_version in self._supported_versions:
                self.protocol_version = requested_version
            else:
                self.protocol_version = self._default_version

            self.client_info = params.get("clientInfo")
            self.client_capabilities = params.get("capabilities", {})
            negotiated = self._negotiator.negotiate(
                self.client_capabilities, self._server_capabilities
            )
            self._negotiated = negotiated
            protocol_version = self.protocol_version
            self.state = LifecycleState.INITIALIZING

        logger.info(
            "MCP initialization: client=%s requested_version=%s protocol_version=%s",
            params.get("clientInfo") or "unknown client",
            requested_version,
            protocol_version,
        )

        result: dict[str, Any] = {
            "protocolVersion": protocol_version,
            "capabilities": negotiated.to_dict(),
            "serverInfo": self.server_info,
        }
        if self._instructions:
            result["instructions"] = self._instructions
        return result

    def handle_initialized(self) -> bool:
        """Handle initialized notification.

        Returns:
            True if the session moved to READY, False if the notification was
            ignored because the session was not initializing.
        """
        with self._lock:
            if self.state != LifecycleState.INITIALIZING:
                logger.warning("Ignoring initialized notification in state %s", self.state.value)
                return False
            self.state = LifecycleState.READY

        logger.info("MCP session ready")
        return True

    def close(self) -> None:
        """Force the session closed and drop all handshake data."""
        with self._lock:
            self.state = LifecycleState.CLOSED
            self.client_info = None
            self.client_capabilities = None
            self.protocol_version = None
            self._negotiated = None
