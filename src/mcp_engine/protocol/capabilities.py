"""MCP capability negotiation.

Computes the feature set usable by both peers from the client's and the
server's declared capability trees. A capability tree maps a category
(``tools``, ``resources``, ``prompts``, ``logging``...) to a mapping of
features, each either a boolean flag or a nested configuration.

Precedence rules:

* A category or feature the server does not declare is disabled, unless the
  server whitelists it as supported-but-optional.
* A boolean feature is enabled only when both peers enable it. The client
  value defaults to the server value when absent.
* Structured features are combined with :func:`merge_config`.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

logger = logging.getLogger(__name__)

# Features the server can adopt from a client even when it does not declare them.
DEFAULT_OPTIONAL_FEATURES = (
    "logging",
    "tools.listChanged",
    "resources.subscribe",
    "resources.listChanged",
    "prompts.listChanged",
)


def merge_config(server: Mapping[str, Any], client: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two structured feature configurations.

    Keys present on one side only are copied. When both sides hold a mapping
    the merge recurses; when both hold a list the result is the server entries
    followed by the client entries; any other conflict keeps the server value.

    Args:
        server: Server-side configuration (wins on scalar conflicts).
        client: Client-side configuration.

    Returns:
        A new dictionary; neither input is modified.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(client))
    for key, server_value in server.items():
        if key not in client:
            merged[key] = copy.deepcopy(server_value)
            continue

        client_value = client[key]
        if isinstance(server_value, Mapping) and isinstance(client_value, Mapping):
            merged[key] = merge_config(server_value, client_value)
        elif isinstance(server_value, list) and isinstance(client_value, list):
            merged[key] = copy.deepcopy(server_value) + copy.deepcopy(client_value)
        else:
            merged[key] = copy.deepcopy(server_value)
    return merged


def freeze(value: Any) -> Any:
    """Deep-copy a JSON-like value into read-only mappings and tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, list | tuple):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze(): plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class NegotiatedCapabilities:
    """Immutable result of a capability negotiation."""

    tree: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_dict(cls, tree: Mapping[str, Any]) -> NegotiatedCapabilities:
        return cls(tree=freeze(tree))

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable, JSON-serializable copy of the tree."""
        return thaw(self.tree)

    def has_category(self, category: str) -> bool:
        return category in self.tree

    def has_feature(self, category: str, feature: str) -> bool:
        """Check whether a feature is enabled (truthy) in a category."""
        features = self.tree.get(category)
        if not isinstance(features, Mapping):
            return False
        return bool(features.get(feature))


class CapabilityNegotiator:
    """Negotiates capabilities between an MCP client and this server.

    The negotiator holds no mutable state: the whitelist is fixed at
    construction and :meth:`negotiate` is deterministic.
    """

    def __init__(self, optional_features: Iterable[str] = DEFAULT_OPTIONAL_FEATURES) -> None:
        """Initialize the negotiator.

        Args:
            optional_features: Whitelist of ``category`` or ``category.feature``
                entries the server supports without declaring them.
        """
        self._optional = frozenset(optional_features)

    @property
    def optional_features(self) -> frozenset[str]:
        return self._optional

    def negotiate(
        self, client: Mapping[str, Any] | None, server: Mapping[str, Any]
    ) -> NegotiatedCapabilities:
        """Negotiate capabilities.

        Args:
            client: Capabilities declared by the client in ``initialize``.
            server: Capabilities declared by the server configuration.

        Returns:
            The negotiated, immutable capability tree.
        """
        client = client or {}
        negotiated: dict[str, Any] = {}

        for category, server_features in server.items():
            if server_features is None or server_features is False:
                continue
            if not isinstance(server_features, Mapping):
                server_features = {}
            negotiated[category] = self._negotiate_category(
                category, server_features, client.get(category)
            )

        for category, client_features in client.items():
            if category in negotiated or category in server:
                continue
            if category in self._optional:
                negotiated[category] = (
                    copy.deepcopy(dict(client_features))
                    if isinstance(client_features, Mapping)
                    else {}
                )

        logger.debug(
            "Capability negotiation completed: client=%s server=%s negotiated=%s",
            dict(client),
            dict(server),
            negotiated,
        )
        return NegotiatedCapabilities.from_dict(negotiated)

    def _negotiate_category(
        self,
        category: str,
        server_features: Mapping[str, Any],
        client_features: Any,
    ) -> dict[str, Any]:
        if client_features is False:
            # Client opted out of the whole category: keep it declared but off.
            return {
                feature: False for feature, value in server_features.items() if isinstance(value, bool)
            }
        if not isinstance(client_features, Mapping):
            client_features = {}

        negotiated: dict[str, Any] = {}
        for feature, server_value in server_features.items():
            negotiated[feature] = self._negotiate_feature(
                server_value, client_features.get(feature, server_value)
            )

        for feature, client_value in client_features.items():
            if feature in negotiated:
                continue
            if f"{category}.{feature}" in self._optional:
                negotiated[feature] = copy.deepcopy(client_value)

        return negotiated

    @staticmethod
    def _negotiate_feature(server_value: Any, client_value: Any) -> Any:
        if server_value is None or server_value is False:
            return False

        if isinstance(server_value, bool):
            if isinstance(client_value, Mapping):
                return copy.deepcopy(dict(client_value))
            return bool(client_value)

        if client_value is False:
            return False

        if isinstance(server_value, Mapping):
            if isinstance(client_value, Mapping):
                return merge_config(server_value, client_value)
            return copy.deepcopy(dict(server_value))

        if isinstance(server_value, list) and isinstance(client_value, list):
            return copy.deepcopy(server_value) + copy.deepcopy(client_value)

        # Other scalars and mismatched shapes: server value wins
        return copy.deepcopy(server_value)


def capability_summary(capabilities: NegotiatedCapabilities) -> dict[str, Any]:
    """Summarize a negotiated tree for debugging output.

    Returns:
        Dictionary listing categories and enabled/disabled ``category.feature``
        names.
    """
    summary: dict[str, Any] = {
        "supported_capabilities": list(capabilities.tree),
        "feature_count": 0,
        "enabled_features": [],
        "disabled_features": [],
    }
    for category, features in capabilities.tree.items():
        if not isinstance(features, Mapping):
            continue
        summary["feature_count"] += len(features)
        for feature, value in features.items():
            bucket = "enabled_features" if value else "disabled_features"
            summary[bucket].append(f"{category}.{feature}")
    return summary
