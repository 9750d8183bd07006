"""End-to-end tests for MCPServer sessions."""

import asyncio
import json

from mcp_engine.config import NotificationSettings, ServerConfig
from mcp_engine.notifications.models import TOOLS_LIST_CHANGED
from mcp_engine.protocol.capabilities import freeze
from mcp_engine.protocol.errors import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    RATE_LIMIT_EXCEEDED,
    SERVER_NOT_INITIALIZED,
)
from mcp_engine.server import MCPServer

from conftest import EchoTool, call, handshake, notification, request


class TestInitialization:
    """Tests for the initialize handshake."""

    def test_initialize_response(self, server):
        """Unsupported versions fall back to the default version."""
        session = server.open_session()
        raw = session.handle_raw(
            '{"jsonrpc":"2.0","method":"initialize","params":{"protocolVersion":"X",'
            '"capabilities":{},"clientInfo":{"name":"c","version":"1"}},"id":1}'
        )
        response = json.loads(raw)

        assert response["id"] == 1
        assert response["result"]["protocolVersion"] == "2024-11-05"
        assert "capabilities" in response["result"]
        assert response["result"]["serverInfo"] == {"name": "mcp-engine", "version": "1.0.0"}

    def test_supported_version_is_echoed(self, server):
        session = server.open_session()

        response = call(
            session, "initialize", {"protocolVersion": "2025-03-26", "capabilities": {}}
        )

        assert response["result"]["protocolVersion"] == "2025-03-26"

    def test_instructions_included(self):
        server = MCPServer(ServerConfig(instructions="Call echo first"))

        response = handshake(server.open_session())

        assert response["result"]["instructions"] == "Call echo first"

    def test_requests_rejected_before_handshake(self, populated_server):
        session = populated_server.open_session()

        response = call(session, "tools/list")

        assert response["error"]["code"] == SERVER_NOT_INITIALIZED

    def test_requests_rejected_before_initialized_notification(self, populated_server):
        session = populated_server.open_session()
        call(session, "initialize", {"protocolVersion": "2024-11-05"})

        assert call(session, "tools/list", msg_id=2)["error"]["code"] == SERVER_NOT_INITIALIZED

    def test_ping_before_handshake(self, server):
        assert call(server.open_session(), "ping")["result"] == {}

    def test_legacy_initialized_method(self, server):
        session = server.open_session()
        call(session, "initialize", {"protocolVersion": "2024-11-05"})

        session.handle_raw(notification("initialized"))

        assert session.is_ready

    def test_second_initialize_rejected(self, ready_session):
        response = call(ready_session, "initialize", {"protocolVersion": "2024-11-05"}, msg_id=9)

        assert response["error"]["code"] == INVALID_REQUEST

    def test_initialize_requires_protocol_version(self, server):
        response = call(server.open_session(), "initialize", {"capabilities": {}})

        assert response["error"]["code"] == INVALID_PARAMS


class TestRequests:
    """Tests for requests after the handshake."""

    def test_empty_tools_list(self, server):
        session = server.open_session()
        handshake(session)

        assert call(session, "tools/list", msg_id=2)["result"] == {"tools": []}

    def test_missing_tool(self, ready_session):
        response = call(ready_session, "tools/call", {"name": "missing"})

        assert response["error"]["code"] == METHOD_NOT_FOUND
        assert "missing" in response["error"]["message"]

    def test_read_without_uri(self, ready_session):
        response = call(ready_session, "resources/read", {})

        assert response["error"]["code"] == INVALID_PARAMS

    def test_call_tool(self, ready_session):
        response = call(ready_session, "tools/call", {"name": "echo", "arguments": {"message": "hi"}})

        assert response["result"] == {"content": [{"type": "text", "text": "hi"}], "isError": False}

    def test_failing_tool_is_a_result(self, ready_session):
        response = call(ready_session, "tools/call", {"name": "fail"})

        assert response["result"]["isError"] is True

    def test_get_prompt(self, ready_session):
        response = call(ready_session, "prompts/get", {"name": "greeting", "arguments": {"who": "Bo"}})

        assert response["result"]["messages"][0]["content"]["text"] == "Hello, Bo!"

    def test_read_resource(self, ready_session):
        response = call(ready_session, "resources/read", {"uri": "config://app"})

        assert response["result"]["contents"][0]["uri"] == "config://app"

    def test_roots_list(self):
        config = ServerConfig(roots=(freeze({"uri": "file:///srv", "name": "srv"}),))
        session = MCPServer(config).open_session()
        handshake(session)

        response = call(session, "roots/list", msg_id=2)

        assert response["result"] == {"roots": [{"uri": "file:///srv", "name": "srv"}]}

    def test_unknown_method(self, ready_session):
        assert call(ready_session, "sampling/nope")["error"]["code"] == METHOD_NOT_FOUND

    def test_methods_registered(self, server):
        assert set(server.methods) >= {
            "initialize",
            "ping",
            "tools/list",
            "tools/call",
            "resources/list",
            "resources/read",
            "resources/templates/list",
            "prompts/list",
            "prompts/get",
            "roots/list",
        }

    def test_batch_over_session(self, ready_session):
        raw = ready_session.handle_raw(
            "[" + request("ping", msg_id=1) + "," + notification("ping") + "]"
        )

        assert json.loads(raw) == [{"jsonrpc": "2.0", "id": 1, "result": {}}]

    def test_cancelled_notification_acknowledged_silently(self, ready_session):
        assert ready_session.handle_raw(notification("notifications/cancelled", {"requestId": 1})) is None


class TestRateLimiting:
    """Tests for configured per-method rate limits."""

    def test_exceeding_limit_returns_error(self):
        server = MCPServer(ServerConfig(rate_limits=freeze({"tools/call": 1})))
        server.register_tool(EchoTool())
        session = server.open_session()
        handshake(session)
        params = {"name": "echo", "arguments": {"message": "x"}}

        assert "result" in call(session, "tools/call", params, msg_id=2)
        response = call(session, "tools/call", params, msg_id=3)

        assert response["error"]["code"] == RATE_LIMIT_EXCEEDED
        assert response["id"] == 3


class TestListChanged:
    """Tests for list_changed broadcasts on registration."""

    def test_register_broadcasts_when_declared(self, server):
        server.broker.subscribe("watcher")

        server.register_tool(EchoTool())

        (item,) = server.broker.take_pending("watcher", 10)
        assert item.message["method"] == TOOLS_LIST_CHANGED

    def test_no_broadcast_when_not_declared(self):
        server = MCPServer(ServerConfig(capabilities=freeze({"tools": {}})))
        server.broker.subscribe("watcher")

        server.register_tool(EchoTool())

        assert server.broker.pending_count() == 0


class TestSessions:
    """Tests for session management."""

    def test_sessions_are_independent(self, populated_server):
        first = populated_server.open_session("a")
        second = populated_server.open_session("b")
        handshake(first)

        assert "result" in call(first, "tools/list", msg_id=2)
        assert call(second, "tools/list", msg_id=2)["error"]["code"] == SERVER_NOT_INITIALIZED

    def test_close_session(self, server):
        session = server.open_session("a")
        server.broker.subscribe("a")

        server.close_session("a")

        assert session.is_closed
        assert server.get_session("a") is None
        assert not server.broker.is_subscribed("a")

    def test_closed_session_rejects_initialize(self, server):
        session = server.open_session("a")
        server.close_session("a")

        response = call(session, "initialize", {"protocolVersion": "2024-11-05"})

        assert response["error"]["code"] == INVALID_REQUEST

    def test_handle_message_uses_default_session(self, server):
        raw = server.handle_message(request("initialize", {"protocolVersion": "2024-11-05"}))
        server.handle_message(notification("notifications/initialized"))

        assert json.loads(raw)["result"]["protocolVersion"] == "2024-11-05"
        assert json.loads(server.handle_message(request("tools/list", msg_id=2)))["result"] == {
            "tools": []
        }

    def test_close_resets_default_session(self, server):
        server.handle_message(request("initialize", {"protocolVersion": "2024-11-05"}))

        server.close()
        response = json.loads(server.handle_message(request("tools/list", msg_id=2)))

        assert response["error"]["code"] == SERVER_NOT_INITIALIZED


class TestDiscovery:
    """Tests for component discovery at startup."""

    def test_discovers_configured_paths(self, tmp_path):
        component_dir = tmp_path / "clock"
        component_dir.mkdir()
        (component_dir / "manifest.yaml").write_text("kind: tool\nname: clock\n")
        (component_dir / "handler.py").write_text(
            "from mcp_engine.components.base import Tool\n\n\n"
            "class Component(Tool):\n"
            "    name = 'clock'\n\n"
            "    def execute(self, arguments):\n"
            "        return '12:00'\n"
        )

        server = MCPServer(ServerConfig(discovery_enabled=True, discovery_paths=(str(tmp_path),)))

        assert server.tools.has("clock")

    def test_from_config_file(self, tmp_path):
        path = tmp_path / "server.yaml"
        path.write_text('version: "1.0"\nserver:\n  name: from-file\n')

        server = MCPServer.from_config_file(path)

        assert server.config.name == "from-file"



class TestNotificationStream:
    """Tests for the configured SSE stream."""

    def test_uses_configured_batch_size(self):
        settings = NotificationSettings(poll_interval=0, drain_batch_size=1)
        server = MCPServer(ServerConfig(notifications=settings))
        checks = iter([False, True])

        async def run():
            stream = server.notification_stream("web", is_disconnected=lambda: next(checks))
            await stream.__anext__()
            server.register_tool(EchoTool())
            server.register_tool(EchoTool(), name="echo2")
            return [frame async for frame in stream]

        frames = asyncio.run(run())

        assert len(frames) == 1
        assert frames[0].startswith("event: notification\n")
        assert not server.broker.is_subscribed("web")
