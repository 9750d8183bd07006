"""Roots handler - roots/list."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from mcp_engine.protocol.capabilities import thaw


class RootsHandler:
    """Returns the filesystem or URI roots configured for the server."""

    def __init__(self, roots: Iterable[Mapping[str, Any]] = ()) -> None:
        self._roots = tuple(thaw(root) for root in roots)

    def supported_methods(self) -> list[str]:
        return ["roots/list"]

    def handle(self, method: str, params: Any, context: Any = None) -> dict[str, Any]:
        return {"roots": [thaw(root) for root in self._roots]}
