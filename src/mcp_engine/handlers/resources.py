"""Resource handler - resources/list, resources/read and resources/templates/list."""

from __future__ import annotations

import logging
from typing import Any

from mcp_engine.components.base import Resource, ResourceDefinition, ResourceTemplateDefinition
from mcp_engine.handlers.base import BaseHandler, attribute, doc_summary, validate_schema
from mcp_engine.handlers.content import normalize_resource_contents
from mcp_engine.protocol.errors import JsonRpcError, ResourceNotFoundError

logger = logging.getLogger(__name__)

RESOURCES_READ_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "uri": {"type": "string", "minLength": 1},
    },
    "required": ["uri"],
}


class ResourceHandler(BaseHandler):
    """Serves resources from a resource registry.

    Resources are read by exact URI. Templates are advertised for discovery
    only; reads never expand them.
    """

    kind = "resource"

    def _methods(self):
        return {
            "resources/list": self.list_resources,
            "resources/read": self.read_resource,
            "resources/templates/list": self.list_templates,
        }

    def definition(self, name: str, resource: Any) -> ResourceDefinition:
        if isinstance(resource, Resource):
            return resource.definition()

        return ResourceDefinition(
            uri=attribute(resource, "uri", f"resource://{name}"),
            name=name,
            description=attribute(resource, "description", doc_summary(resource)),
            mime_type=attribute(resource, "mime_type", "text/plain"),
            title=attribute(resource, "title"),
        )

    def template_definition(self, name: str, resource: Any) -> ResourceTemplateDefinition | None:
        template = attribute(resource, "uri_template")
        if template is None:
            return None

        definition = self.definition(name, resource)
        return ResourceTemplateDefinition(
            uri_template=template,
            name=definition.name,
            description=definition.description,
            mime_type=definition.mime_type,
        )

    def list_resources(self, params: dict[str, Any]) -> dict[str, Any]:
        return self._list(
            params, "resources", lambda name, resource: self.definition(name, resource).to_dict()
        )

    def list_templates(self, params: dict[str, Any]) -> dict[str, Any]:
        def build(name: str, resource: Any) -> dict[str, Any] | None:
            template = self.template_definition(name, resource)
            return None if template is None else template.to_dict()

        return self._list(params, "resourceTemplates", build)

    def find(self, uri: str) -> tuple[str, Any, ResourceDefinition] | None:
        """Find the resource whose URI equals ``uri`` exactly."""
        for name, resource in self._registry.all().items():
            try:
                definition = self.definition(name, resource)
            except Exception as e:
                logger.warning("Skipping resource %s: cannot build definition: %s", name, e)
                continue
            if definition.uri == uri:
                return name, resource, definition
        return None

    def read_resource(self, params: dict[str, Any]) -> dict[str, Any]:
        """Read a resource.

        Returns:
            ``{"contents": [...]}``; a failed read adds ``"isError": true``.

        Raises:
            InvalidParamsError: If ``uri`` is missing or not a string.
            ResourceNotFoundError: If no resource has that URI.
        """
        validate_schema(params, RESOURCES_READ_SCHEMA)
        uri = params["uri"]

        found = self.find(uri)
        if found is None:
            logger.warning("Resource not found for URI: %s", uri)
            raise ResourceNotFoundError(uri)

        name, resource, definition = found
        read_params = {k: v for k, v in params.items() if k != "uri"}

        logger.info("Reading resource: %s", uri)
        try:
            output = self._invoke(resource, Resource, "read", name, read_params)
        except JsonRpcError:
            raise
        except Exception as e:
            logger.error("Resource read failed: %s: %s", uri, e)
            return {
                "contents": normalize_resource_contents(
                    f"Failed to read resource: {e}", uri, "text/plain"
                ),
                "isError": True,
            }

        return {"contents": normalize_resource_contents(output, uri, definition.mime_type)}
