"""Notification broker - subscriptions, routing and delivery tracking.

Notifications are delivered to a client's push transport when it is
connected, and buffered for pull retrieval (e.g. by the streaming loop)
otherwise. The pending buffer is bounded; the oldest entry is dropped on
overflow.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import OrderedDict, deque
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from mcp_engine.notifications import filters
from mcp_engine.notifications.models import (
    PROMPTS_LIST_CHANGED,
    RESOURCES_LIST_CHANGED,
    RESOURCES_UPDATED,
    TOOLS_LIST_CHANGED,
    ClientDelivery,
    DeliveryRecord,
    DeliveryStatus,
    Notification,
    PendingNotification,
    Subscription,
    new_notification_id,
    utcnow,
)

logger = logging.getLogger(__name__)


class NotificationBroker:
    """Routes notifications to subscribed clients.

    Example:
        broker = NotificationBroker()
        broker.subscribe("client-1", types=["notifications/tools/list_changed"])
        broker.broadcast("notifications/tools/list_changed")
        broker.pending_count("client-1")  # 1
    """

    def __init__(
        self,
        *,
        queue_notifications: bool = False,
        max_pending: int = 1000,
        max_tracked: int = 1000,
        enable_delivery_tracking: bool = True,
    ) -> None:
        """Initialize the broker.

        Args:
            queue_notifications: Defer delivery until process_queue() runs.
            max_pending: Capacity of the pending buffer (all clients).
            max_tracked: Number of delivery records retained.
            enable_delivery_tracking: Record delivery outcomes.

        Raises:
            ValueError: If a capacity is not positive.
        """
        if max_pending <= 0 or max_tracked <= 0:
            raise ValueError("max_pending and max_tracked must be positive")

        self._queue_notifications = queue_notifications
        self._max_tracked = max_tracked
        self._tracking_enabled = enable_delivery_tracking

        self._lock = threading.RLock()
        self._subscriptions: dict[str, Subscription] = {}
        self._pending: deque[PendingNotification] = deque(maxlen=max_pending)
        self._queue: deque[Notification] = deque()
        self._records: OrderedDict[str, DeliveryRecord] = OrderedDict()

    @classmethod
    def from_settings(cls, settings: Any) -> NotificationBroker:
        """Build a broker from a NotificationSettings config value."""
        return cls(
            queue_notifications=settings.queue_notifications,
            max_pending=settings.max_pending_notifications,
            max_tracked=settings.max_tracked_notifications,
            enable_delivery_tracking=settings.enable_delivery_tracking,
        )

    # Subscriptions

    def subscribe(
        self,
        client_id: str,
        types: Iterable[str] | None = None,
        transport: Any = None,
        filter: Mapping[str, Any] | None = None,
    ) -> Subscription:
        """Subscribe a client, replacing any existing subscription.

        Args:
            client_id: Client identifier.
            types: Notification types to receive; None or empty means all.
            transport: Optional push transport (``send``/``is_connected``).
            filter: Optional predicate filter (see notifications.filters).

        Returns:
            The new subscription.
        """
        subscription = Subscription(
            client_id=client_id,
            types=frozenset(types or ()),
            transport=transport,
            filter=dict(filter or {}),
        )
        with self._lock:
            self._subscriptions[client_id] = subscription

        logger.info(
            "Client %s subscribed (types=%s, transport=%s, filter=%s)",
            client_id,
            sorted(subscription.types) or "all",
            transport is not None,
            bool(subscription.filter),
        )
        return subscription

    def unsubscribe(self, client_id: str) -> bool:
        """Remove a client's subscription, pending items and tracking entries.

        Returns:
            True if the client was subscribed.
        """
        with self._lock:
            removed = self._subscriptions.pop(client_id, None) is not None
            self._drop_pending(client_id)
            for record in self._records.values():
                record.clients.pop(client_id, None)

        if removed:
            logger.info("Client %s unsubscribed", client_id)
        return removed

    def update_filter(self, client_id: str, filter: Mapping[str, Any] | None) -> None:
        """Replace a client's predicate filter; an empty filter clears it.

        Raises:
            KeyError: If the client is not subscribed.
        """
        with self._lock:
            self._subscriptions[client_id].filter = dict(filter or {})

    def is_subscribed(self, client_id: str) -> bool:
        return client_id in self._subscriptions

    def active_subscriptions(self) -> list[Subscription]:
        with self._lock:
            return [s for s in self._subscriptions.values() if s.active]

    # Sending

    def broadcast(self, notification_type: str, params: dict[str, Any] | None = None) -> str:
        """Send a notification to every eligible subscriber.

        Returns:
            The notification id.
        """
        notification = Notification(
            id=new_notification_id(), type=notification_type, params=dict(params or {})
        )
        logger.info(
            "Broadcasting %s (%s, %d subscribers)",
            notification_type,
            notification.id,
            len(self._subscriptions),
        )
        self._route(notification)
        return notification.id

    def notify(
        self, client_id: str, notification_type: str, params: dict[str, Any] | None = None
    ) -> str:
        """Send a notification to one client.

        Returns:
            The notification id.
        """
        notification = Notification(
            id=new_notification_id(),
            type=notification_type,
            params=dict(params or {}),
            client_id=client_id,
        )
        logger.info("Sending %s to %s (%s)", notification_type, client_id, notification.id)
        self._route(notification)
        return notification.id

    def process_queue(self) -> int:
        """Deliver every queued notification.

        Delivery is at-least-once in intent; nothing is deduplicated.

        Returns:
            Number of notifications processed.
        """
        processed = 0
        while True:
            with self._lock:
                if not self._queue:
                    return processed
                notification = self._queue.popleft()
            self._deliver(notification)
            processed += 1

    # Standard list-changed notifications

    def tools_list_changed(self) -> str:
        return self.broadcast(TOOLS_LIST_CHANGED)

    def resources_list_changed(self) -> str:
        return self.broadcast(RESOURCES_LIST_CHANGED)

    def resource_updated(self, uri: str) -> str:
        return self.broadcast(RESOURCES_UPDATED, {"uri": uri})

    def prompts_list_changed(self) -> str:
        return self.broadcast(PROMPTS_LIST_CHANGED)

    def registry_listener(self, notification_type: str) -> Callable[[str, str], None]:
        """Build a ComponentRegistry listener broadcasting ``notification_type``."""

        def listener(action: str, name: str) -> None:
            logger.debug("Registry %s %s; broadcasting %s", action, name, notification_type)
            self.broadcast(notification_type)

        return listener

    # Pending buffer

    def pending_count(self, client_id: str | None = None) -> int:
        with self._lock:
            if client_id is None:
                return len(self._pending)
            return sum(1 for item in self._pending if item.client_id == client_id)

    def clear_pending(self, client_id: str) -> int:
        """Drop a client's buffered notifications.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            return self._drop_pending(client_id)

    def take_pending(self, client_id: str, limit: int) -> list[PendingNotification]:
        """Remove and return up to ``limit`` buffered items for a client, oldest first.

        Taken items are marked Delivered for that client.
        """
        with self._lock:
            taken: list[PendingNotification] = []
            kept: list[PendingNotification] = []
            for item in self._pending:
                if item.client_id == client_id and len(taken) < limit:
                    taken.append(item)
                else:
                    kept.append(item)

            if taken:
                self._pending.clear()
                self._pending.extend(kept)
                for item in taken:
                    self._mark_client(item.notification_id, client_id, DeliveryStatus.DELIVERED)
            return taken

    # Tracking

    def delivery_status(self, notification_id: str) -> dict[str, Any] | None:
        """Return the delivery record of a notification, or None if not tracked."""
        with self._lock:
            record = self._records.get(notification_id)
            return None if record is None else record.to_dict()

    def delivery_record(self, notification_id: str) -> DeliveryRecord | None:
        return self._records.get(notification_id)

    # Internals

    def _route(self, notification: Notification) -> None:
        if self._queue_notifications:
            with self._lock:
                self._queue.append(notification)
                self._track(notification.id, DeliveryStatus.QUEUED)
            return
        self._deliver(notification)

    def _deliver(self, notification: Notification) -> None:
        with self._lock:
            self._track(notification.id, DeliveryStatus.SENT)
            targets = self._eligible(notification)

        for subscription in targets:
            self._deliver_to_client(subscription, notification)

    def _eligible(self, notification: Notification) -> list[Subscription]:
        if notification.client_id is not None:
            subscription = self._subscriptions.get(notification.client_id)
            return [subscription] if subscription is not None and subscription.active else []

        return [
            s
            for s in self._subscriptions.values()
            if s.active and s.accepts_type(notification.type)
        ]

    def _deliver_to_client(self, subscription: Subscription, notification: Notification) -> None:
        client_id = subscription.client_id
        try:
            if not filters.matches(subscription.filter, notification.to_dict()):
                return

            message = notification.to_message()
            transport = subscription.transport
            if transport is not None and transport.is_connected():
                transport.send(json.dumps(message, separators=(",", ":")))
                with self._lock:
                    self._mark_client(notification.id, client_id, DeliveryStatus.DELIVERED)
                return

            with self._lock:
                if len(self._pending) == self._pending.maxlen:
                    dropped = self._pending[0]
                    logger.warning(
                        "Pending buffer full; dropping %s for %s",
                        dropped.notification_id,
                        dropped.client_id,
                    )
                    self._mark_client(
                        dropped.notification_id,
                        dropped.client_id,
                        DeliveryStatus.FAILED,
                        "dropped: pending buffer full",
                    )
                self._pending.append(
                    PendingNotification(
                        client_id=client_id, notification_id=notification.id, message=message
                    )
                )
                self._mark_client(notification.id, client_id, DeliveryStatus.QUEUED)

        except Exception as e:
            logger.error("Failed to deliver %s to %s: %s", notification.id, client_id, e)
            with self._lock:
                self._mark_client(notification.id, client_id, DeliveryStatus.FAILED, str(e))

    def _drop_pending(self, client_id: str) -> int:
        kept = [item for item in self._pending if item.client_id != client_id]
        removed = len(self._pending) - len(kept)
        if removed:
            self._pending.clear()
            self._pending.extend(kept)
        return removed

    def _track(self, notification_id: str, status: DeliveryStatus) -> DeliveryRecord | None:
        if not self._tracking_enabled:
            return None

        record = self._records.get(notification_id)
        if record is None:
            record = DeliveryRecord(notification_id=notification_id, status=status)
            self._records[notification_id] = record
            while len(self._records) > self._max_tracked:
                self._records.popitem(last=False)
        else:
            record.status = status
            record.updated_at = utcnow()
        return record

    def _mark_client(
        self,
        notification_id: str,
        client_id: str,
        status: DeliveryStatus,
        error: str | None = None,
    ) -> None:
        if not self._tracking_enabled:
            return

        record = self._records.get(notification_id)
        if record is None:
            return

        record.clients[client_id] = ClientDelivery(status=status, error=error)
        record.updated_at = utcnow()
