"""Notification data structures."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from mcp_engine.protocol.jsonrpc import build_notification

# Standard MCP notification methods
TOOLS_LIST_CHANGED = "notifications/tools/list_changed"
RESOURCES_LIST_CHANGED = "notifications/resources/list_changed"
RESOURCES_UPDATED = "notifications/resources/updated"
PROMPTS_LIST_CHANGED = "notifications/prompts/list_changed"
LOGGING_MESSAGE = "notifications/message"
PROGRESS = "notifications/progress"
CANCELLED = "notifications/cancelled"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_notification_id() -> str:
    return f"mcp_{uuid.uuid4()}"


class DeliveryStatus(str, Enum):
    """Delivery state of a notification, overall or for one client."""

    PENDING = "pending"
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True)
class Notification:
    """A server-initiated notification."""

    id: str
    type: str
    params: dict[str, Any]
    timestamp: datetime = field(default_factory=utcnow)
    client_id: str | None = None

    def to_message(self) -> dict[str, Any]:
        """Build the JSON-RPC notification sent on the wire."""
        return build_notification(self.type, self.params or None)

    def to_dict(self) -> dict[str, Any]:
        """Plain view used by subscription filters."""
        return {
            "id": self.id,
            "type": self.type,
            "params": self.params,
            "timestamp": self.timestamp.isoformat(),
            "client_id": self.client_id,
        }


@dataclass
class Subscription:
    """A client's subscription to notifications.

    An empty ``types`` set means every type.
    """

    client_id: str
    types: frozenset[str] = frozenset()
    transport: Any = None
    filter: dict[str, Any] = field(default_factory=dict)
    active: bool = True
    subscribed_at: datetime = field(default_factory=utcnow)

    def accepts_type(self, notification_type: str) -> bool:
        return not self.types or notification_type in self.types


@dataclass
class ClientDelivery:
    """Outcome of delivering one notification to one client."""

    status: DeliveryStatus
    timestamp: datetime = field(default_factory=utcnow)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        outcome: dict[str, Any] = {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.error is not None:
            outcome["error"] = self.error
        return outcome


@dataclass
class DeliveryRecord:
    """Tracks a notification's overall and per-client delivery status."""

    notification_id: str
    status: DeliveryStatus
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    clients: dict[str, ClientDelivery] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.notification_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "clients": {cid: outcome.to_dict() for cid, outcome in self.clients.items()},
        }


@dataclass(frozen=True)
class PendingNotification:
    """A message buffered for pull retrieval by a client."""

    client_id: str
    notification_id: str
    message: dict[str, Any]
    queued_at: datetime = field(default_factory=utcnow)
