"""Tests for the notification broker."""

import json
from unittest.mock import MagicMock

import pytest

from mcp_engine.notifications.broker import NotificationBroker
from mcp_engine.notifications.models import (
    RESOURCES_UPDATED,
    TOOLS_LIST_CHANGED,
    DeliveryStatus,
)


def connected_transport() -> MagicMock:
    transport = MagicMock()
    transport.is_connected.return_value = True
    return transport


@pytest.fixture
def broker() -> NotificationBroker:
    return NotificationBroker()


class TestSubscriptions:
    """Tests for subscribe/unsubscribe."""

    def test_subscribe_and_unsubscribe(self, broker):
        broker.subscribe("a")

        assert broker.is_subscribed("a")
        assert [s.client_id for s in broker.active_subscriptions()] == ["a"]
        assert broker.unsubscribe("a") is True
        assert broker.unsubscribe("a") is False
        assert not broker.is_subscribed("a")

    def test_resubscribe_replaces(self, broker):
        broker.subscribe("a", types=["x"])
        broker.subscribe("a", types=["y"])

        assert broker.active_subscriptions()[0].types == frozenset({"y"})

    def test_unsubscribe_purges_pending_and_tracking(self, broker):
        broker.subscribe("a")
        broker.subscribe("b")
        notification_id = broker.broadcast("x")

        broker.unsubscribe("a")

        assert broker.pending_count("a") == 0
        assert broker.pending_count("b") == 1
        assert set(broker.delivery_status(notification_id)["clients"]) == {"b"}

    def test_update_filter(self, broker):
        broker.subscribe("a")
        broker.update_filter("a", {"params.uri": "file:///b"})

        broker.resource_updated("file:///a")
        broker.resource_updated("file:///b")

        assert broker.pending_count("a") == 1

    def test_update_filter_unknown_client(self, broker):
        with pytest.raises(KeyError):
            broker.update_filter("ghost", {})

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            NotificationBroker(max_pending=0)


class TestRouting:
    """Tests for broadcast and unicast routing."""

    def test_broadcast_respects_type_and_filter(self, broker):
        """Only the unfiltered subscriber gets a delivery entry."""
        broker.subscribe("a")
        broker.subscribe("b", filter={"type": "y"})

        notification_id = broker.broadcast("x")
        clients = broker.delivery_status(notification_id)["clients"]

        assert clients["a"]["status"] in ("delivered", "queued")
        assert "b" not in clients

    def test_type_subscription(self, broker):
        broker.subscribe("a", types=["y"])

        broker.broadcast("x")
        broker.broadcast("y")

        assert broker.pending_count("a") == 1

    def test_unicast_targets_one_client(self, broker):
        broker.subscribe("a", types=["other"])
        broker.subscribe("b")

        broker.notify("a", "x", {"n": 1})

        assert broker.pending_count("a") == 1
        assert broker.pending_count("b") == 0

    def test_unicast_to_unknown_client_is_tracked_only(self, broker):
        notification_id = broker.notify("ghost", "x")

        assert broker.delivery_status(notification_id)["clients"] == {}

    def test_pushes_to_connected_transport(self, broker):
        transport = connected_transport()
        broker.subscribe("a", transport=transport)

        notification_id = broker.tools_list_changed()

        (sent,), _ = transport.send.call_args
        assert json.loads(sent) == {"jsonrpc": "2.0", "method": TOOLS_LIST_CHANGED}
        assert broker.pending_count("a") == 0
        status = broker.delivery_status(notification_id)
        assert status["status"] == "sent"
        assert status["clients"]["a"]["status"] == "delivered"

    def test_disconnected_transport_buffers(self, broker):
        transport = MagicMock()
        transport.is_connected.return_value = False
        broker.subscribe("a", transport=transport)

        broker.broadcast("x")

        transport.send.assert_not_called()
        assert broker.pending_count("a") == 1

    def test_transport_failure_marks_failed(self, broker):
        transport = connected_transport()
        transport.send.side_effect = OSError("pipe closed")
        broker.subscribe("a", transport=transport)

        notification_id = broker.broadcast("x")
        outcome = broker.delivery_status(notification_id)["clients"]["a"]

        assert outcome["status"] == "failed"
        assert outcome["error"] == "pipe closed"

    def test_callable_filter(self, broker):
        broker.subscribe("a", filter={"params.count": lambda value, n: (value or 0) > 5})

        broker.broadcast("x", {"count": 3})
        broker.broadcast("x", {"count": 9})

        (item,) = broker.take_pending("a", 10)
        assert item.message["params"] == {"count": 9}

    def test_resource_updated_params(self, broker):
        broker.subscribe("a")

        broker.resource_updated("file:///a")

        (item,) = broker.take_pending("a", 1)
        assert item.message == {
            "jsonrpc": "2.0",
            "method": RESOURCES_UPDATED,
            "params": {"uri": "file:///a"},
        }


class TestPendingBuffer:
    """Tests for the bounded pending buffer."""

    def test_overflow_drops_oldest(self):
        broker = NotificationBroker(max_pending=2)
        broker.subscribe("a")

        for n in range(3):
            broker.broadcast("x", {"n": n})

        assert [item.message["params"]["n"] for item in broker.take_pending("a", 10)] == [1, 2]

    def test_overflow_marks_dropped_item_failed(self):
        broker = NotificationBroker(max_pending=1)
        broker.subscribe("a")

        first = broker.broadcast("x")
        second = broker.broadcast("x")

        dropped = broker.delivery_status(first)["clients"]["a"]
        assert dropped["status"] == "failed"
        assert dropped["error"] == "dropped: pending buffer full"
        assert broker.delivery_status(second)["clients"]["a"]["status"] == "queued"

    def test_take_pending_marks_delivered(self, broker):
        broker.subscribe("a")
        notification_id = broker.broadcast("x")

        assert broker.delivery_status(notification_id)["clients"]["a"]["status"] == "queued"
        broker.take_pending("a", 10)

        assert broker.delivery_status(notification_id)["clients"]["a"]["status"] == "delivered"
        assert broker.pending_count() == 0

    def test_take_pending_respects_limit_and_order(self, broker):
        broker.subscribe("a")
        for n in range(3):
            broker.broadcast("x", {"n": n})

        first = broker.take_pending("a", 2)

        assert [item.message["params"]["n"] for item in first] == [0, 1]
        assert broker.pending_count("a") == 1

    def test_clear_pending(self, broker):
        broker.subscribe("a")
        broker.broadcast("x")
        broker.broadcast("y")

        assert broker.clear_pending("a") == 2
        assert broker.pending_count() == 0


class TestQueuedMode:
    """Tests for deferred delivery."""

    def test_queue_then_process(self):
        broker = NotificationBroker(queue_notifications=True)
        broker.subscribe("a")

        notification_id = broker.broadcast("x")

        assert broker.delivery_status(notification_id)["status"] == "queued"
        assert broker.pending_count("a") == 0

        assert broker.process_queue() == 1
        assert broker.pending_count("a") == 1
        assert broker.delivery_status(notification_id)["status"] == "sent"
        assert broker.process_queue() == 0


class TestTracking:
    """Tests for delivery tracking."""

    def test_oldest_records_evicted(self):
        broker = NotificationBroker(max_tracked=2)

        ids = [broker.broadcast("x") for _ in range(3)]

        assert broker.delivery_status(ids[0]) is None
        assert broker.delivery_status(ids[2]) is not None

    def test_late_update_does_not_revive_evicted_record(self):
        """Draining an evicted notification keeps newer records."""
        broker = NotificationBroker(max_tracked=2)
        broker.subscribe("a")
        ids = [broker.broadcast("x") for _ in range(3)]

        broker.take_pending("a", 1)

        assert broker.delivery_status(ids[0]) is None
        assert broker.delivery_status(ids[1]) is not None
        assert broker.delivery_status(ids[2]) is not None

    def test_tracking_disabled(self):
        broker = NotificationBroker(enable_delivery_tracking=False)
        broker.subscribe("a")

        notification_id = broker.broadcast("x")

        assert broker.delivery_status(notification_id) is None
        assert broker.pending_count("a") == 1

    def test_record_fields(self, broker):
        notification_id = broker.broadcast("x")

        status = broker.delivery_status(notification_id)

        assert notification_id.startswith("mcp_")
        assert status["id"] == notification_id
        assert set(status) == {"id", "status", "created_at", "updated_at", "clients"}
        assert broker.delivery_record(notification_id).status is DeliveryStatus.SENT

    def test_unknown_id(self, broker):
        assert broker.delivery_status("mcp_unknown") is None


class TestRegistryListener:
    """Tests for registry-driven list_changed broadcasts."""

    def test_listener_broadcasts(self, broker):
        broker.subscribe("a")
        listener = broker.registry_listener(TOOLS_LIST_CHANGED)

        listener("registered", "echo")

        (item,) = broker.take_pending("a", 1)
        assert item.message["method"] == TOOLS_LIST_CHANGED
