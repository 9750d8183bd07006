"""Component base classes and data structures.

Defines the capability interfaces implemented by tools, resources and prompts,
and the definitions they advertise in list responses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

# Schema advertised for components that do not declare one
DEFAULT_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {},
    "additionalProperties": True,
}


@dataclass
class ToolDefinition:
    """Definition of a tool as advertised by tools/list."""

    name: str
    description: str
    input_schema: dict[str, Any]
    title: str | None = None
    output_schema: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP tool format.

        Returns:
            Dictionary in MCP tools/list format.
        """
        definition: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
        if self.title is not None:
            definition["title"] = self.title
        if self.output_schema is not None:
            definition["outputSchema"] = self.output_schema
        return definition


@dataclass
class ResourceDefinition:
    """Definition of a resource as advertised by resources/list."""

    uri: str
    name: str
    description: str
    mime_type: str = "text/plain"
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        definition: dict[str, Any] = {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }
        if self.title is not None:
            definition["title"] = self.title
        return definition


@dataclass
class ResourceTemplateDefinition:
    """Definition advertised by resources/templates/list."""

    uri_template: str
    name: str
    description: str
    mime_type: str = "text/plain"

    def to_dict(self) -> dict[str, Any]:
        return {
            "uriTemplate": self.uri_template,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


@dataclass
class PromptDefinition:
    """Definition of a prompt as advertised by prompts/list."""

    name: str
    description: str
    arguments: list[dict[str, Any]] = field(default_factory=list)
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        definition: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "arguments": self.arguments,
        }
        if self.title is not None:
            definition["title"] = self.title
        return definition


@dataclass
class ToolResult:
    """Result of a tool execution.

    Tools return this to report an operation that ran but failed
    (``is_error=True``) without raising.
    """

    content: list[dict[str, Any]]
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format.

        Returns:
            Dictionary in MCP tools/call result format.
        """
        return {
            "content": self.content,
            "isError": self.is_error,
        }


class Tool(ABC):
    """Abstract base class for tools.

    Example:
        class EchoTool(Tool):
            name = "echo"
            description = "Echoes its input"

            def execute(self, arguments):
                return arguments["message"]
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the tool name."""
        pass

    @property
    def description(self) -> str:
        return ""

    @property
    def input_schema(self) -> dict[str, Any]:
        return dict(DEFAULT_INPUT_SCHEMA)

    @property
    def title(self) -> str | None:
        return None

    @property
    def output_schema(self) -> dict[str, Any] | None:
        return None

    def definition(self) -> ToolDefinition:
        """Build the advertised definition."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
            title=self.title,
            output_schema=self.output_schema,
        )

    @abstractmethod
    def execute(self, arguments: dict[str, Any]) -> Any:
        """Execute the tool.

        Args:
            arguments: Tool arguments, already validated against input_schema.

        Returns:
            A string, a structured value, content items, or a ToolResult.
        """
        pass


class Resource(ABC):
    """Abstract base class for resources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the resource name."""
        pass

    @property
    @abstractmethod
    def uri(self) -> str:
        """Return the exact URI this resource is read by."""
        pass

    @property
    def description(self) -> str:
        return ""

    @property
    def mime_type(self) -> str:
        return "text/plain"

    @property
    def title(self) -> str | None:
        return None

    @property
    def uri_template(self) -> str | None:
        """RFC 6570 template advertised by resources/templates/list, if any."""
        return None

    def definition(self) -> ResourceDefinition:
        return ResourceDefinition(
            uri=self.uri,
            name=self.name,
            description=self.description,
            mime_type=self.mime_type,
            title=self.title,
        )

    @abstractmethod
    def read(self, params: dict[str, Any]) -> Any:
        """Read the resource contents.

        Args:
            params: Request params other than ``uri``.

        Returns:
            A string, a structured value, or a list of content items.
        """
        pass


class Prompt(ABC):
    """Abstract base class for prompts."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the prompt name."""
        pass

    @property
    def description(self) -> str:
        return ""

    @property
    def arguments(self) -> list[dict[str, Any]]:
        """Argument descriptors: ``{"name", "description", "required"}``."""
        return []

    @property
    def title(self) -> str | None:
        return None

    def definition(self) -> PromptDefinition:
        return PromptDefinition(
            name=self.name,
            description=self.description,
            arguments=self.arguments,
            title=self.title,
        )

    @abstractmethod
    def render(self, arguments: dict[str, Any]) -> Any:
        """Render the prompt.

        Returns:
            A list of ``{"role", "content"}`` messages, a single message, or a
            value turned into one user message.
        """
        pass
