"""Content normalization for tool, resource and prompt results."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

# Keys that mark a partially shaped resource content item
_RESOURCE_ITEM_KEYS = ("text", "uri", "mimeType", "blob")


def text_content(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def is_content_item(value: Any) -> bool:
    """Return True for an already shaped content item (a mapping with ``type``)."""
    return isinstance(value, Mapping) and "type" in value


def to_text(value: Any) -> str:
    """Render a value as text: strings as-is, structured values as pretty JSON."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


def normalize_content(value: Any) -> list[dict[str, Any]]:
    """Normalize a tool result into a list of content items.

    Args:
        value: String, structured value, a content item or a list of content
            items.

    Returns:
        List of content items.
    """
    if is_content_item(value):
        return [dict(value)]
    if isinstance(value, (list, tuple)) and value and all(is_content_item(v) for v in value):
        return [dict(v) for v in value]
    return [text_content(to_text(value))]


def normalize_resource_contents(
    value: Any, uri: str, mime_type: str = "text/plain"
) -> list[dict[str, Any]]:
    """Normalize the value returned by a resource read.

    Accepts a ``{"contents": [...]}`` envelope, a list of items, a single
    content item, or any other value which becomes one text item.
    """
    if isinstance(value, Mapping) and isinstance(value.get("contents"), list):
        return [_resource_item(item, uri, mime_type) for item in value["contents"]]

    if isinstance(value, (list, tuple)):
        if value and all(is_content_item(v) for v in value):
            return [dict(v) for v in value]
        return [_resource_item(item, uri, mime_type) for item in value]

    return [_resource_item(value, uri, mime_type)]


def _resource_item(item: Any, uri: str, mime_type: str) -> dict[str, Any]:
    if is_content_item(item):
        return dict(item)

    if isinstance(item, Mapping) and any(key in item for key in _RESOURCE_ITEM_KEYS):
        shaped = {"type": "text", "uri": uri, "mimeType": mime_type}
        shaped.update(item)
        return shaped

    return {"type": "text", "uri": uri, "mimeType": mime_type, "text": to_text(item)}


def normalize_messages(value: Any) -> list[dict[str, Any]]:
    """Normalize a prompt render result into a list of messages.

    A list whose first element looks like a message is returned as-is, a
    single message is wrapped, anything else becomes one user message.
    """
    if isinstance(value, (list, tuple)) and value:
        first = value[0]
        if isinstance(first, Mapping) and ("role" in first or "content" in first):
            return [dict(message) for message in value]

    if isinstance(value, Mapping) and "role" in value and "content" in value:
        return [dict(value)]

    return [{"role": "user", "content": text_content(to_text(value))}]
