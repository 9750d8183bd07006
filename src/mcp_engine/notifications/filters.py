"""Subscription predicate filters.

A filter maps a dotted path into the notification (``type``,
``params.uri``...) to a matcher:

* a list, tuple or set matches when the value is one of its members
* a callable ``(value, notification) -> bool`` matches when it returns true
* any other value matches by equality

Every clause must match.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_MISSING = object()


def resolve_path(data: Any, path: str) -> Any:
    """Resolve a dotted path through nested mappings and sequences.

    Returns:
        The value, or None if any segment is missing.
    """
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, Sequence) and not isinstance(current, str) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else _MISSING
        else:
            return None
        if current is _MISSING:
            return None
    return current


def clause_matches(matcher: Any, value: Any, notification: Mapping[str, Any]) -> bool:
    if isinstance(matcher, (list, tuple, set, frozenset)):
        return value in matcher
    if callable(matcher):
        return bool(matcher(value, notification))
    return value == matcher


def matches(filter_spec: Mapping[str, Any] | None, notification: Mapping[str, Any]) -> bool:
    """Check whether a notification passes a subscription filter.

    Args:
        filter_spec: Path to matcher mapping; empty or None passes everything.
        notification: Plain notification view (see Notification.to_dict).
    """
    if not filter_spec:
        return True

    for path, matcher in filter_spec.items():
        if not clause_matches(matcher, resolve_path(notification, path), notification):
            return False
    return True
