"""Component interfaces, registry and discovery."""

from mcp_engine.components.base import (
    Prompt,
    PromptDefinition,
    Resource,
    ResourceDefinition,
    ResourceTemplateDefinition,
    Tool,
    ToolDefinition,
    ToolResult,
)
from mcp_engine.components.loader import ComponentLoader, ComponentLoadError, LoadedComponent
from mcp_engine.components.registry import ComponentRegistry

__all__ = [
    "ComponentLoadError",
    "ComponentLoader",
    "ComponentRegistry",
    "LoadedComponent",
    "Prompt",
    "PromptDefinition",
    "Resource",
    "ResourceDefinition",
    "ResourceTemplateDefinition",
    "Tool",
    "ToolDefinition",
    "ToolResult",
]
