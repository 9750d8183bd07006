"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from typing import Any

import pytest

from mcp_engine.components.base import Prompt, Resource, Tool, ToolResult
from mcp_engine.config import ServerConfig
from mcp_engine.server import MCPServer, ServerSession

INITIALIZE_PARAMS = {
    "protocolVersion": "2024-11-05",
    "capabilities": {},
    "clientInfo": {"name": "test-client", "version": "1.0"},
}


class EchoTool(Tool):
    """Echoes the message argument."""

    name = "echo"
    description = "Echoes input"
    input_schema = {
        "type": "object",
        "properties": {"message": {"type": "string"}},
        "required": ["message"],
    }

    def execute(self, arguments: dict[str, Any]) -> Any:
        return arguments["message"]


class FailingTool(Tool):
    name = "fail"
    description = "Always raises"

    def execute(self, arguments: dict[str, Any]) -> Any:
        raise RuntimeError("disk on fire")


class SoftFailTool(Tool):
    name = "soft_fail"

    def execute(self, arguments: dict[str, Any]) -> ToolResult:
        return ToolResult(content=[{"type": "text", "text": "quota exhausted"}], is_error=True)


class ConfigResource(Resource):
    name = "config"
    uri = "config://app"
    description = "Application settings"
    mime_type = "application/json"

    def read(self, params: dict[str, Any]) -> Any:
        return {"debug": False, "region": "eu"}


class GreetingPrompt(Prompt):
    name = "greeting"
    description = "Greets someone"
    arguments = [{"name": "who", "description": "Name to greet", "required": True}]

    def render(self, arguments: dict[str, Any]) -> Any:
        return f"Hello, {arguments['who']}!"


def request(method: str, params: Any = None, msg_id: int | str = 1) -> str:
    """Encode a JSON-RPC request frame."""
    message: dict[str, Any] = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def notification(method: str, params: Any = None) -> str:
    message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def call(session: ServerSession, method: str, params: Any = None, msg_id: int = 1) -> dict:
    """Send a request on a session and decode the response."""
    raw = session.handle_raw(request(method, params, msg_id))
    assert raw is not None
    return json.loads(raw)


def handshake(session: ServerSession) -> dict:
    """Complete the initialize/initialized handshake."""
    response = call(session, "initialize", INITIALIZE_PARAMS)
    assert session.handle_raw(notification("notifications/initialized")) is None
    return response


@pytest.fixture
def server() -> MCPServer:
    """Server with default configuration and no components."""
    return MCPServer(ServerConfig())


@pytest.fixture
def populated_server() -> MCPServer:
    """Server with one of each component kind registered."""
    server = MCPServer(ServerConfig())
    server.register_tool(EchoTool())
    server.register_tool(FailingTool())
    server.register_tool(SoftFailTool())
    server.register_resource(ConfigResource())
    server.register_prompt(GreetingPrompt())
    return server


@pytest.fixture
def ready_session(populated_server: MCPServer) -> ServerSession:
    """Session on the populated server with the handshake completed."""
    session = populated_server.open_session("test")
    handshake(session)
    return session
