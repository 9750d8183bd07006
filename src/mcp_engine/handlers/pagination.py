"""Cursor pagination for list methods.

A cursor is an opaque token: base64-encoded JSON ``{"offset": n, "limit": m}``.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class PaginationCursor:
    """Decoded pagination position."""

    offset: int = 0
    limit: int = DEFAULT_PAGE_SIZE

    def encode(self) -> str:
        payload = json.dumps({"offset": self.offset, "limit": self.limit})
        return base64.b64encode(payload.encode("utf-8")).decode("ascii")

    def next(self) -> PaginationCursor:
        return PaginationCursor(offset=self.offset + self.limit, limit=self.limit)

    @classmethod
    def decode(cls, token: str, default_limit: int = DEFAULT_PAGE_SIZE) -> PaginationCursor:
        """Decode a cursor token.

        Malformed tokens decode to the first page with the default limit.

        Args:
            token: Token previously produced by encode().
            default_limit: Page size used when the token carries none.

        Returns:
            The decoded cursor.
        """
        try:
            data = json.loads(base64.b64decode(token, validate=True).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return cls(offset=0, limit=default_limit)

        if not isinstance(data, dict):
            return cls(offset=0, limit=default_limit)

        offset = data.get("offset", 0)
        limit = data.get("limit", default_limit)
        if not _is_count(offset) or not _is_count(limit) or limit == 0:
            return cls(offset=0, limit=default_limit)
        return cls(offset=offset, limit=limit)


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def paginate(
    items: Sequence[Any], cursor: str | None, default_limit: int = DEFAULT_PAGE_SIZE
) -> tuple[list[Any], str | None]:
    """Slice a list of definitions for a list response.

    Without a cursor every item is returned. With a cursor, one page is
    returned and a next cursor is included whenever the page is full.

    Returns:
        Tuple of (page, next cursor or None).
    """
    if cursor is None:
        return list(items), None

    position = PaginationCursor.decode(cursor, default_limit)
    page = list(items[position.offset : position.offset + position.limit])
    next_cursor = position.next().encode() if len(page) >= position.limit else None
    return page, next_cursor
