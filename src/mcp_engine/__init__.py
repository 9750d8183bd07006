"""MCP protocol engine.

A JSON-RPC 2.0 Model Context Protocol server core exposing tools, resources
and prompts, with push notifications.
"""

from mcp_engine.components import Prompt, Resource, Tool, ToolResult
from mcp_engine.config import ConfigLoadError, ServerConfig, load_config
from mcp_engine.notifications import NotificationBroker
from mcp_engine.server import MCPServer, ServerSession

__version__ = "1.0.0"

__all__ = [
    "ConfigLoadError",
    "MCPServer",
    "NotificationBroker",
    "Prompt",
    "Resource",
    "ServerConfig",
    "ServerSession",
    "Tool",
    "ToolResult",
    "__version__",
    "load_config",
]
