"""Shared behaviour of the component request handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from jsonschema import Draft202012Validator

from mcp_engine.components.registry import ComponentRegistry
from mcp_engine.handlers.content import text_content
from mcp_engine.handlers.pagination import DEFAULT_PAGE_SIZE, paginate
from mcp_engine.protocol.errors import InvalidParamsError, MethodNotFoundError, NotExecutableError

logger = logging.getLogger(__name__)

LIST_PARAMS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "cursor": {"type": "string"},
    },
}


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running a component.

    A failure still travels as a successful RPC response; callers check the
    ``isError`` marker in the payload.
    """

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def success(cls, content: list[dict[str, Any]]) -> ExecutionResult:
        return cls(content=content, is_error=False)

    @classmethod
    def failure(cls, message: str) -> ExecutionResult:
        return cls(content=[text_content(message)], is_error=True)

    def to_dict(self, key: str = "content") -> dict[str, Any]:
        return {key: self.content, "isError": self.is_error}


def validate_schema(instance: Any, schema: dict[str, Any], what: str = "params") -> None:
    """Validate a value against a JSON schema.

    Args:
        instance: Value to validate.
        schema: JSON Schema (draft 2020-12).
        what: Name of the validated value used in the error message.

    Raises:
        InvalidParamsError: With every validation message in ``data.errors``.
    """
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    if errors:
        messages = [_format_error(e) for e in errors]
        raise InvalidParamsError(f"Invalid {what}: {messages[0]}", {"errors": messages})


def _format_error(error: Any) -> str:
    if error.path:
        location = ".".join(str(p) for p in error.path)
        return f"{location}: {error.message}"
    return error.message


class BaseHandler(ABC):
    """Base class for handlers serving one component registry.

    Subclasses map their methods to bound handler functions and implement
    the definition and execution chains for their component kind.
    """

    kind = "component"

    def __init__(self, registry: ComponentRegistry, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        """Initialize the handler.

        Args:
            registry: Registry holding the components served by this handler.
            page_size: Default page size when a cursor carries no limit.
        """
        self._registry = registry
        self._page_size = page_size

    @property
    def registry(self) -> ComponentRegistry:
        return self._registry

    @abstractmethod
    def _methods(self) -> dict[str, Callable[[dict[str, Any]], dict[str, Any]]]:
        """Return method name to bound implementation."""
        pass

    def supported_methods(self) -> list[str]:
        return list(self._methods())

    def handle(self, method: str, params: Any, context: Any = None) -> dict[str, Any]:
        """Handle one request for a supported method.

        Args:
            method: JSON-RPC method name.
            params: Request params (None is treated as an empty object).
            context: Request context supplied by the dispatcher.

        Returns:
            The result object.

        Raises:
            MethodNotFoundError: If the method is not served by this handler.
            InvalidParamsError: If params is not an object.
        """
        implementation = self._methods().get(method)
        if implementation is None:
            raise MethodNotFoundError(f"Method not found: {method}", {"method": method})

        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise InvalidParamsError(f"Invalid params: {method} expects an object")

        return implementation(params)

    def _list(self, params: dict[str, Any], key: str, build: Callable[[str, Any], Any]) -> dict:
        """Build a (possibly paginated) list response.

        Entries whose definition cannot be derived are skipped with a warning.
        """
        validate_schema(params, LIST_PARAMS_SCHEMA)

        definitions = []
        for name, component in self._registry.all().items():
            try:
                definition = build(name, component)
            except Exception as e:
                logger.warning("Skipping %s %s: cannot build definition: %s", self.kind, name, e)
                continue
            if definition is not None:
                definitions.append(definition)

        page, next_cursor = paginate(definitions, params.get("cursor"), self._page_size)
        result: dict[str, Any] = {key: page}
        if next_cursor is not None:
            result["nextCursor"] = next_cursor
        return result

    def _invoke(self, component: Any, interface: type, method_name: str, name: str, arg: Any) -> Any:
        """Run a component through the execution chain.

        Interface implementation, then an object exposing ``method_name``,
        then a plain callable.

        Raises:
            NotExecutableError: If the component offers none of these.
        """
        if isinstance(component, interface):
            return getattr(component, method_name)(arg)

        method = getattr(component, method_name, None)
        if callable(method):
            return method(arg)

        if callable(component):
            return component(arg)

        raise NotExecutableError(self.kind, name)


def attribute(component: Any, name: str, default: Any = None) -> Any:
    """Read a definition attribute from a non-interface component."""
    value = getattr(component, name, None)
    return default if value is None else value


def doc_summary(component: Any) -> str:
    """First line of a component's docstring, or an empty string."""
    doc = getattr(component, "__doc__", None)
    if not doc:
        return ""
    return doc.strip().splitlines()[0]
