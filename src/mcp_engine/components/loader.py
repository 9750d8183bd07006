"""Component loader - discovers and loads components from disk."""

from __future__ import annotations

import importlib.util
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from mcp_engine.components.base import Prompt, Resource, Tool

logger = logging.getLogger(__name__)

COMPONENT_KINDS: dict[str, type] = {
    "tool": Tool,
    "resource": Resource,
    "prompt": Prompt,
}


class ComponentLoadError(Exception):
    """Raised when a component fails to load."""

    pass


@dataclass
class LoadedComponent:
    """A component instance together with its manifest metadata."""

    kind: str
    name: str
    component: Any
    path: Path


class ComponentLoader:
    """Discovers and loads components from search paths.

    Components are directories containing:
    - manifest.yaml: ``kind`` (tool, resource or prompt) and ``name``
    - handler.py: Python module with a ``Component`` class
    """

    def __init__(self, paths: Iterable[Path | str]) -> None:
        """Initialize the loader.

        Args:
            paths: Directories to scan for component directories.
        """
        self._paths = [Path(p) for p in paths]

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def discover(self) -> list[LoadedComponent]:
        """Discover and load components from every search path.

        A component that fails to load is logged and skipped.

        Returns:
            Loaded components in path order, then directory name order.
        """
        loaded: list[LoadedComponent] = []
        for base in self._paths:
            if not base.is_dir():
                logger.warning("Component path does not exist: %s", base)
                continue

            for item in sorted(base.iterdir()):
                if not item.is_dir() or not (item / "manifest.yaml").exists():
                    continue

                try:
                    loaded.append(self.load(item))
                except ComponentLoadError as e:
                    logger.warning("Failed to load component %s: %s", item.name, e)

        return loaded

    def load(self, component_dir: Path) -> LoadedComponent:
        """Load a single component directory.

        Args:
            component_dir: Directory holding manifest.yaml and handler.py.

        Returns:
            The loaded component.

        Raises:
            ComponentLoadError: If the component is invalid.
        """
        manifest = self._read_manifest(component_dir / "manifest.yaml")
        kind = manifest.get("kind")
        if kind not in COMPONENT_KINDS:
            raise ComponentLoadError(
                f"Invalid kind {kind!r} in {component_dir}; expected one of "
                f"{', '.join(COMPONENT_KINDS)}"
            )

        module = self._import_handler(component_dir)
        component_class = getattr(module, "Component", None)
        if component_class is None:
            raise ComponentLoadError(f"No Component class in {component_dir / 'handler.py'}")

        interface = COMPONENT_KINDS[kind]
        if not isinstance(component_class, type) or not issubclass(component_class, interface):
            raise ComponentLoadError(f"Component class must inherit from {interface.__name__}")

        try:
            component = component_class()
        except Exception as e:
            raise ComponentLoadError(f"Cannot instantiate component in {component_dir}: {e}") from e

        name = manifest.get("name") or component.name
        logger.info("Loaded %s %s from %s", kind, name, component_dir)
        return LoadedComponent(kind=kind, name=name, component=component, path=component_dir)

    def _read_manifest(self, manifest_path: Path) -> dict[str, Any]:
        try:
            with open(manifest_path) as f:
                manifest = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ComponentLoadError(f"Cannot read {manifest_path}: {e}") from e

        if not isinstance(manifest, dict):
            raise ComponentLoadError(f"Manifest must be a mapping: {manifest_path}")
        return manifest

    def _import_handler(self, component_dir: Path) -> Any:
        handler_path = component_dir / "handler.py"
        if not handler_path.exists():
            raise ComponentLoadError(f"Missing handler.py in {component_dir}")

        spec = importlib.util.spec_from_file_location(
            f"mcp_components.{component_dir.name}.handler", handler_path
        )
        if spec is None or spec.loader is None:
            raise ComponentLoadError(f"Cannot load handler from {handler_path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[spec.name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(spec.name, None)
            raise ComponentLoadError(f"Error importing {handler_path}: {e}") from e
        return module
