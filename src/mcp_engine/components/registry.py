"""Component registry - stores registered tools, resources or prompts."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

RegistryListener = Callable[[str, str], None]


class ComponentRegistry:
    """In-memory registry of one component kind.

    Entries are component instances implementing the matching interface
    (Tool, Resource, Prompt) or plain callables. Listeners are notified with
    ``(action, name)`` after each registration change so that list-changed
    notifications can be broadcast.
    """

    def __init__(self, kind: str) -> None:
        """Initialize the registry.

        Args:
            kind: Component kind (``tool``, ``resource`` or ``prompt``).
        """
        self._kind = kind
        self._entries: dict[str, Any] = {}
        self._listeners: list[RegistryListener] = []
        self._lock = threading.Lock()

    @property
    def kind(self) -> str:
        return self._kind

    def register(self, component: Any, name: str | None = None) -> str:
        """Register a component.

        Args:
            component: Component instance or callable.
            name: Registry name; defaults to the component's ``name`` or the
                callable's ``__name__``.

        Returns:
            The name the component was registered under.

        Raises:
            ValueError: If no name can be determined.
        """
        name = name or getattr(component, "name", None) or getattr(component, "__name__", None)
        if not isinstance(name, str) or not name:
            raise ValueError(f"Cannot determine a name for {self._kind}: {component!r}")

        with self._lock:
            replaced = name in self._entries
            self._entries[name] = component

        if replaced:
            logger.warning("Replaced existing %s: %s", self._kind, name)
        else:
            logger.info("Registered %s: %s", self._kind, name)
        self._notify("registered", name)
        return name

    def unregister(self, name: str) -> bool:
        """Remove a component.

        Returns:
            True if a component was removed.
        """
        with self._lock:
            removed = self._entries.pop(name, None) is not None
        if removed:
            self._notify("unregistered", name)
        return removed

    def has(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> Any:
        """Get a component by name.

        Raises:
            KeyError: If no component has that name.
        """
        return self._entries[name]

    def all(self) -> dict[str, Any]:
        """Return a snapshot of all entries, in registration order."""
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add_listener(self, listener: RegistryListener) -> None:
        self._listeners.append(listener)

    def _notify(self, action: str, name: str) -> None:
        for listener in self._listeners:
            try:
                listener(action, name)
            except Exception:
                logger.exception("Registry listener failed for %s %s", action, name)
