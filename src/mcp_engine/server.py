"""MCP Server - wires the protocol engine together.

An MCPServer owns the parts shared by every connection: configuration,
negotiator, component registries, handlers and the notification broker.
Each connection gets its own ServerSession holding a ProtocolSession and a
RequestDispatcher.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from mcp_engine.components.loader import ComponentLoader
from mcp_engine.components.registry import ComponentRegistry
from mcp_engine.config import ServerConfig, load_config
from mcp_engine.handlers.prompts import PromptHandler
from mcp_engine.handlers.resources import ResourceHandler
from mcp_engine.handlers.roots import RootsHandler
from mcp_engine.handlers.tools import ToolHandler
from mcp_engine.notifications.broker import NotificationBroker
from mcp_engine.notifications.models import (
    PROMPTS_LIST_CHANGED,
    RESOURCES_LIST_CHANGED,
    TOOLS_LIST_CHANGED,
)
from mcp_engine.notifications.stream import DisconnectCheck, stream_notifications
from mcp_engine.protocol.capabilities import CapabilityNegotiator
from mcp_engine.protocol.dispatcher import RequestContext, RequestDispatcher, RequestHandler
from mcp_engine.protocol.lifecycle import ProtocolSession
from mcp_engine.security.ratelimiter import MethodRateGuard

logger = logging.getLogger(__name__)


class ServerSession:
    """One client connection: protocol state plus its dispatcher."""

    def __init__(
        self, session_id: str, protocol: ProtocolSession, dispatcher: RequestDispatcher
    ) -> None:
        self.session_id = session_id
        self.protocol = protocol
        self.dispatcher = dispatcher

    @property
    def is_ready(self) -> bool:
        return self.protocol.is_ready

    @property
    def is_closed(self) -> bool:
        return self.protocol.is_closed

    def handle_raw(self, raw: str | bytes) -> str | None:
        """Handle one raw frame.

        Returns:
            Encoded response, or None when no response is owed.
        """
        return self.dispatcher.handle_raw(raw)

    def handle(self, payload: Any) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Handle an already decoded payload."""
        return self.dispatcher.handle(payload)

    def close(self) -> None:
        self.protocol.close()
        logger.info("Session %s closed", self.session_id)


class MCPServer:
    """MCP Server implementation.

    Provides:
    - Lifecycle management (initialize/initialized, ping)
    - Tool, resource, prompt and roots requests
    - List-changed notifications through the broker
    - Optional per-method rate limiting
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        broker: NotificationBroker | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: Server configuration (defaults apply when omitted).
            broker: Notification broker; built from config when omitted.
        """
        self._config = config or ServerConfig()
        self._negotiator = CapabilityNegotiator(self._config.optional_features)
        self._broker = broker or NotificationBroker.from_settings(self._config.notifications)

        self._tools = ComponentRegistry("tool")
        self._resources = ComponentRegistry("resource")
        self._prompts = ComponentRegistry("prompt")
        self._watch_registry(self._tools, "tools", TOOLS_LIST_CHANGED)
        self._watch_registry(self._resources, "resources", RESOURCES_LIST_CHANGED)
        self._watch_registry(self._prompts, "prompts", PROMPTS_LIST_CHANGED)

        page_size = self._config.page_size
        handlers = [
            ToolHandler(self._tools, page_size),
            ResourceHandler(self._resources, page_size),
            PromptHandler(self._prompts, page_size),
            RootsHandler(self._config.roots),
        ]

        request_handlers: dict[str, RequestHandler] = {
            "initialize": _initialize,
            "ping": _ping,
        }
        for handler in handlers:
            for method in handler.supported_methods():
                request_handlers[method] = _route_to(handler)
        self._request_handlers: Mapping[str, RequestHandler] = MappingProxyType(request_handlers)

        self._request_guard = (
            MethodRateGuard(self._config.rate_limits) if self._config.rate_limits else None
        )
        self._sessions: dict[str, ServerSession] = {}
        self._default_session: ServerSession | None = None

        if self._config.discovery_enabled:
            self.discover_components()

    @classmethod
    def from_config_file(cls, path: Path) -> MCPServer:
        """Build a server from a YAML configuration file."""
        return cls(load_config(path))

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def broker(self) -> NotificationBroker:
        return self._broker

    @property
    def tools(self) -> ComponentRegistry:
        return self._tools

    @property
    def resources(self) -> ComponentRegistry:
        return self._resources

    @property
    def prompts(self) -> ComponentRegistry:
        return self._prompts

    @property
    def methods(self) -> list[str]:
        return list(self._request_handlers)

    def register_tool(self, tool: Any, name: str | None = None) -> str:
        """Register a tool (Tool instance or callable).

        Returns:
            The registered name.
        """
        return self._tools.register(tool, name)

    def register_resource(self, resource: Any, name: str | None = None) -> str:
        return self._resources.register(resource, name)

    def register_prompt(self, prompt: Any, name: str | None = None) -> str:
        return self._prompts.register(prompt, name)

    def discover_components(self) -> int:
        """Load components from the configured discovery paths.

        Returns:
            Number of components registered.
        """
        registries = {"tool": self._tools, "resource": self._resources, "prompt": self._prompts}
        loader = ComponentLoader(self._config.discovery_paths)
        loaded = loader.discover()
        for item in loaded:
            registries[item.kind].register(item.component, item.name)
        logger.info("Discovered %d components", len(loaded))
        return len(loaded)

    def open_session(self, session_id: str | None = None) -> ServerSession:
        """Create the state for a new connection.

        Args:
            session_id: Optional identifier; generated when omitted.

        Returns:
            A new session in the UNINITIALIZED state.
        """
        session_id = session_id or uuid.uuid4().hex
        protocol = ProtocolSession(
            self._negotiator,
            self._config.capabilities_dict(),
            self._config.server_info(),
            supported_versions=self._config.supported_protocol_versions,
            default_version=self._config.default_protocol_version,
            instructions=self._config.instructions,
        )

        def initialized(params: Any) -> None:
            protocol.handle_initialized()

        def cancelled(params: Any) -> None:
            request_id = params.get("requestId") if isinstance(params, dict) else None
            logger.info("Client cancelled request %s (not interruptible)", request_id)

        dispatcher = RequestDispatcher(
            protocol,
            self._request_handlers,
            {
                "notifications/initialized": initialized,
                "initialized": initialized,
                "notifications/cancelled": cancelled,
            },
            debug=self._config.debug,
            request_guard=self._request_guard,
        )
        session = ServerSession(session_id, protocol, dispatcher)
        self._sessions[session_id] = session
        logger.info("Session %s opened", session_id)
        return session

    def get_session(self, session_id: str) -> ServerSession | None:
        return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()
            self._broker.unsubscribe(session_id)

    def handle_message(self, raw_message: str) -> str | None:
        """Handle a raw message on the default (stdio) session.

        Args:
            raw_message: Raw JSON-RPC message string.

        Returns:
            Response string or None when nothing is owed.
        """
        if self._default_session is None or self._default_session.is_closed:
            self._default_session = self.open_session()
        return self._default_session.handle_raw(raw_message)

    def notification_stream(
        self,
        client_id: str,
        types: Iterable[str] | None = None,
        *,
        filter: Mapping[str, Any] | None = None,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """Open an SSE notification stream using the configured intervals.

        Returns:
            Async iterator of SSE frames; iterate it from the HTTP layer.
        """
        settings = self._config.notifications
        return stream_notifications(
            self._broker,
            client_id,
            types,
            filter=dict(filter) if filter else None,
            heartbeat_interval=settings.heartbeat_interval,
            poll_interval=settings.poll_interval,
            batch_size=settings.drain_batch_size,
            is_disconnected=is_disconnected,
        )

    def close(self) -> None:
        """Close every open session."""
        for session_id in list(self._sessions):
            self.close_session(session_id)
        self._default_session = None

    def _watch_registry(self, registry: ComponentRegistry, category: str, notification: str) -> None:
        features = self._config.capabilities.get(category)
        if isinstance(features, Mapping) and features.get("listChanged"):
            registry.add_listener(self._broker.registry_listener(notification))


def _initialize(params: Any, context: RequestContext) -> dict[str, Any]:
    return context.session.handle_initialize(params)


def _ping(params: Any, context: RequestContext) -> dict[str, Any]:
    return {}


def _route_to(handler: Any) -> RequestHandler:
    def route(params: Any, context: RequestContext) -> dict[str, Any]:
        return handler.handle(context.method, params, context)

    return route
