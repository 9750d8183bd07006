"""Server configuration loading.

Configuration is read once at startup from a YAML file and turned into an
immutable ServerConfig value that is passed explicitly to the components
that need it.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from mcp_engine.protocol.capabilities import DEFAULT_OPTIONAL_FEATURES, freeze, thaw
from mcp_engine.protocol.lifecycle import MCP_PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS

DEFAULT_CAPABILITIES: dict[str, Any] = {
    "tools": {"listChanged": True},
    "resources": {"subscribe": False, "listChanged": True},
    "prompts": {"listChanged": True},
    "logging": {},
}


class ConfigLoadError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def expand_env_vars(value: Any) -> Any:
    """Expand ``${VAR}`` references in strings, recursively.

    Unknown variables are left unchanged.
    """
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")

        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return pattern.sub(replacer, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


@dataclass(frozen=True)
class NotificationSettings:
    """Notification broker and streaming settings."""

    queue_notifications: bool = False
    max_pending_notifications: int = 1000
    max_tracked_notifications: int = 1000
    enable_delivery_tracking: bool = True
    heartbeat_interval: float = 30.0
    poll_interval: float = 0.1
    drain_batch_size: int = 10

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> NotificationSettings:
        defaults = cls()
        return cls(
            queue_notifications=bool(config.get("queue_notifications", defaults.queue_notifications)),
            max_pending_notifications=_positive_int(
                config, "max_pending_notifications", defaults.max_pending_notifications
            ),
            max_tracked_notifications=_positive_int(
                config, "max_tracked_notifications", defaults.max_tracked_notifications
            ),
            enable_delivery_tracking=bool(
                config.get("enable_delivery_tracking", defaults.enable_delivery_tracking)
            ),
            heartbeat_interval=_positive_float(
                config, "heartbeat_interval", defaults.heartbeat_interval
            ),
            poll_interval=_positive_float(config, "poll_interval", defaults.poll_interval),
            drain_batch_size=_positive_int(config, "drain_batch_size", defaults.drain_batch_size),
        )


@dataclass(frozen=True)
class ServerConfig:
    """Immutable server configuration.

    Nested mappings (capabilities, roots, rate limits) are stored read-only;
    use ``capabilities_dict()`` for a mutable copy.
    """

    version: str = "1.0"
    name: str = "mcp-engine"
    server_version: str = "1.0.0"
    instructions: str | None = None
    debug: bool = False
    default_protocol_version: str = MCP_PROTOCOL_VERSION
    supported_protocol_versions: tuple[str, ...] = SUPPORTED_PROTOCOL_VERSIONS
    capabilities: Mapping[str, Any] = field(default_factory=lambda: freeze(DEFAULT_CAPABILITIES))
    optional_features: tuple[str, ...] = DEFAULT_OPTIONAL_FEATURES
    page_size: int = 50
    roots: tuple[Mapping[str, Any], ...] = ()
    discovery_enabled: bool = False
    discovery_paths: tuple[str, ...] = ()
    rate_limits: Mapping[str, int] = field(default_factory=lambda: freeze({}))
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> ServerConfig:
        """Create a ServerConfig from a configuration dictionary.

        Args:
            config: Dictionary parsed from YAML configuration.

        Returns:
            ServerConfig instance; missing keys take their defaults.

        Raises:
            ConfigLoadError: If a section has the wrong shape.
        """
        server = _section(config, "server")
        protocol = _section(config, "protocol")
        pagination = _section(config, "pagination")
        discovery = _section(config, "discovery")
        rate_limits = _section(config, "rate_limits")
        notifications = _section(config, "notifications")
        capabilities = _section(config, "capabilities", DEFAULT_CAPABILITIES)

        supported = tuple(protocol.get("supported_versions", SUPPORTED_PROTOCOL_VERSIONS))
        default_version = protocol.get("default_version", MCP_PROTOCOL_VERSION)
        if default_version not in supported:
            raise ConfigLoadError(
                f"protocol.default_version {default_version!r} is not a supported version"
            )

        roots = config.get("roots") or []
        if not isinstance(roots, list) or not all(
            isinstance(r, Mapping) and "uri" in r for r in roots
        ):
            raise ConfigLoadError("roots must be a list of mappings with a 'uri'")

        for method, limit in rate_limits.items():
            if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
                raise ConfigLoadError(f"rate_limits.{method} must be a positive integer")

        return cls(
            version=str(config.get("version", "1.0")),
            name=server.get("name", "mcp-engine"),
            server_version=str(server.get("version", "1.0.0")),
            instructions=server.get("instructions"),
            debug=bool(config.get("debug", False)),
            default_protocol_version=default_version,
            supported_protocol_versions=supported,
            capabilities=freeze(capabilities),
            optional_features=tuple(config.get("optional_features", DEFAULT_OPTIONAL_FEATURES)),
            page_size=_positive_int(pagination, "default_limit", 50),
            roots=tuple(freeze(r) for r in roots),
            discovery_enabled=bool(discovery.get("enabled", False)),
            discovery_paths=tuple(str(p) for p in discovery.get("paths", [])),
            rate_limits=freeze(rate_limits),
            notifications=NotificationSettings.from_dict(notifications),
        )

    def capabilities_dict(self) -> dict[str, Any]:
        return thaw(self.capabilities)

    def server_info(self) -> dict[str, str]:
        return {"name": self.name, "version": self.server_version}

    def with_debug(self, debug: bool) -> ServerConfig:
        """Return a copy with the debug flag replaced."""
        return replace(self, debug=debug)


def _section(
    config: Mapping[str, Any], key: str, default: Mapping[str, Any] | None = None
) -> Mapping[str, Any]:
    value = config.get(key)
    if value is None:
        return default if default is not None else {}
    if not isinstance(value, Mapping):
        raise ConfigLoadError(f"'{key}' must be a mapping")
    return value


def _positive_int(config: Mapping[str, Any], key: str, default: int) -> int:
    value = config.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigLoadError(f"'{key}' must be a positive integer")
    return value


def _positive_float(config: Mapping[str, Any], key: str, default: float) -> float:
    value = config.get(key, default)
    if not isinstance(value, int | float) or isinstance(value, bool) or value <= 0:
        raise ConfigLoadError(f"'{key}' must be a positive number")
    return float(value)


def load_config(path: Path) -> ServerConfig:
    """Load server configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        ServerConfig instance.

    Raises:
        ConfigLoadError: If the file cannot be found, parsed, or validated.
    """
    if not path.exists():
        raise ConfigLoadError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse config YAML: {e}") from e

    if not isinstance(config, dict):
        raise ConfigLoadError("Config must be a YAML mapping")

    if "version" not in config:
        raise ConfigLoadError("Config must include 'version' field")

    return ServerConfig.from_dict(expand_env_vars(config))
