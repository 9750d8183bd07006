"""Tool handler - tools/list and tools/call."""

from __future__ import annotations

import logging
from typing import Any

from jsonschema import Draft202012Validator, SchemaError

from mcp_engine.components.base import DEFAULT_INPUT_SCHEMA, Tool, ToolDefinition, ToolResult
from mcp_engine.handlers.base import (
    BaseHandler,
    ExecutionResult,
    attribute,
    doc_summary,
    validate_schema,
)
from mcp_engine.handlers.content import normalize_content
from mcp_engine.protocol.errors import InternalError, JsonRpcError, ToolNotFoundError

logger = logging.getLogger(__name__)

TOOLS_CALL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "arguments": {"type": "object"},
    },
    "required": ["name"],
}


class ToolHandler(BaseHandler):
    """Serves tools/list and tools/call from a tool registry."""

    kind = "tool"

    def _methods(self):
        return {
            "tools/list": self.list_tools,
            "tools/call": self.call_tool,
        }

    def definition(self, name: str, tool: Any) -> ToolDefinition:
        """Derive the advertised definition of a registry entry.

        Tool interface first, then attributes on a plain callable, then
        defaults.
        """
        if isinstance(tool, Tool):
            return tool.definition()

        return ToolDefinition(
            name=name,
            description=attribute(tool, "description", doc_summary(tool)),
            input_schema=attribute(tool, "input_schema", dict(DEFAULT_INPUT_SCHEMA)),
            title=attribute(tool, "title"),
            output_schema=attribute(tool, "output_schema"),
        )

    def list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return self._list(params, "tools", lambda name, tool: self.definition(name, tool).to_dict())

    def call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        """Execute a tool.

        Returns:
            ``{"content": [...], "isError": bool}``. A tool that raises or
            reports failure still yields a successful response.

        Raises:
            InvalidParamsError: If params or the tool arguments are invalid.
            ToolNotFoundError: If no tool has the requested name.
        """
        validate_schema(params, TOOLS_CALL_SCHEMA)
        name = params["name"]
        arguments = params.get("arguments") or {}

        if not self._registry.has(name):
            logger.warning("Tool not found: %s", name)
            raise ToolNotFoundError(name)

        tool = self._registry.get(name)
        schema = self.definition(name, tool).input_schema
        try:
            Draft202012Validator.check_schema(schema)
        except SchemaError as e:
            raise InternalError(f"Tool {name} declares an invalid input schema: {e.message}") from e
        validate_schema(arguments, schema, what=f"arguments for tool {name}")

        logger.info("Executing tool: %s", name)
        return self._execute(tool, name, arguments).to_dict()

    def _execute(self, tool: Any, name: str, arguments: dict[str, Any]) -> ExecutionResult:
        try:
            output = self._invoke(tool, Tool, "execute", name, arguments)
        except JsonRpcError:
            raise
        except Exception as e:
            logger.error("Tool execution failed: %s: %s", name, e)
            return ExecutionResult.failure(f"Tool execution failed: {e}")

        if isinstance(output, ToolResult):
            return ExecutionResult(content=output.content, is_error=output.is_error)
        if isinstance(output, ExecutionResult):
            return output
        return ExecutionResult.success(normalize_content(output))
