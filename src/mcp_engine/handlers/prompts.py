"""Prompt handler - prompts/list and prompts/get."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from mcp_engine.components.base import Prompt, PromptDefinition
from mcp_engine.handlers.base import BaseHandler, attribute, doc_summary, validate_schema
from mcp_engine.handlers.content import normalize_messages
from mcp_engine.protocol.errors import (
    InternalError,
    InvalidParamsError,
    JsonRpcError,
    PromptNotFoundError,
)

logger = logging.getLogger(__name__)

PROMPTS_GET_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "arguments": {"type": "object"},
    },
    "required": ["name"],
}


class PromptHandler(BaseHandler):
    """Serves prompts/list and prompts/get from a prompt registry."""

    kind = "prompt"

    def _methods(self):
        return {
            "prompts/list": self.list_prompts,
            "prompts/get": self.get_prompt,
        }

    def definition(self, name: str, prompt: Any) -> PromptDefinition:
        if isinstance(prompt, Prompt):
            return prompt.definition()

        return PromptDefinition(
            name=name,
            description=attribute(prompt, "description", doc_summary(prompt)),
            arguments=list(attribute(prompt, "arguments", [])),
            title=attribute(prompt, "title"),
        )

    def list_prompts(self, params: dict[str, Any]) -> dict[str, Any]:
        return self._list(
            params, "prompts", lambda name, prompt: self.definition(name, prompt).to_dict()
        )

    def get_prompt(self, params: dict[str, Any]) -> dict[str, Any]:
        """Render a prompt.

        Returns:
            ``{"description": str, "messages": [...]}``.

        Raises:
            InvalidParamsError: If params are invalid or a required argument
                is missing.
            PromptNotFoundError: If no prompt has the requested name.
            InternalError: If rendering fails.
        """
        validate_schema(params, PROMPTS_GET_SCHEMA)
        name = params["name"]
        arguments = params.get("arguments") or {}

        if not self._registry.has(name):
            logger.warning("Prompt not found: %s", name)
            raise PromptNotFoundError(name)

        prompt = self._registry.get(name)
        definition = self.definition(name, prompt)

        missing = [
            arg.get("name")
            for arg in definition.arguments
            if isinstance(arg, Mapping)
            and arg.get("required")
            and arg.get("name")
            and arg.get("name") not in arguments
        ]
        if missing:
            raise InvalidParamsError(
                f"Missing required arguments for prompt {name}: {', '.join(missing)}",
                {"missing": missing},
            )

        logger.info("Rendering prompt: %s", name)
        try:
            output = self._invoke(prompt, Prompt, "render", name, arguments)
        except JsonRpcError:
            raise
        except Exception as e:
            logger.error("Prompt rendering failed: %s: %s", name, e)
            raise InternalError(f"Failed to render prompt: {e}") from e

        return {
            "description": definition.description,
            "messages": normalize_messages(output),
        }
