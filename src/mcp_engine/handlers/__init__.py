"""Request handlers for tools, resources, prompts and roots."""

from mcp_engine.handlers.base import BaseHandler, ExecutionResult
from mcp_engine.handlers.pagination import PaginationCursor, paginate
from mcp_engine.handlers.prompts import PromptHandler
from mcp_engine.handlers.resources import ResourceHandler
from mcp_engine.handlers.roots import RootsHandler
from mcp_engine.handlers.tools import ToolHandler

__all__ = [
    "BaseHandler",
    "ExecutionResult",
    "PaginationCursor",
    "PromptHandler",
    "ResourceHandler",
    "RootsHandler",
    "ToolHandler",
    "paginate",
]
