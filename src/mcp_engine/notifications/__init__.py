"""Notification subscriptions, delivery and streaming."""

from mcp_engine.notifications.broker import NotificationBroker
from mcp_engine.notifications.filters import matches
from mcp_engine.notifications.models import (
    DeliveryRecord,
    DeliveryStatus,
    Notification,
    PendingNotification,
    Subscription,
)
from mcp_engine.notifications.stream import stream_notifications

__all__ = [
    "DeliveryRecord",
    "DeliveryStatus",
    "Notification",
    "NotificationBroker",
    "PendingNotification",
    "Subscription",
    "matches",
    "stream_notifications",
]
