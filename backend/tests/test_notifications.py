"""
Tests for notifications.py - bounded buffer, fan-out and read state.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from notifications import (
    NotificationCenter,
    TASK_CREATED,
    TASK_UPDATED,
    NOTIFICATION_UPDATED,
    NOTIFICATIONS_CLEARED,
)


class TestBuffer:
    """Tests for which notifications are kept."""

    def test_newest_first(self):
        center = NotificationCenter()
        center.publish(TASK_CREATED, {"task_id": "a", "message": "created"})
        center.publish(TASK_UPDATED, {"task_id": "a", "message": "updated"})

        assert [n.type for n in center.recent()] == [TASK_UPDATED, TASK_CREATED]

    def test_fields_copied_from_data(self):
        center = NotificationCenter()
        center.publish(TASK_CREATED, {"task_id": "a", "message": "New task created: A", "priority": "High"})

        notification = center.recent()[0]
        assert notification.task_id == "a"
        assert notification.message == "New task created: A"
        assert notification.priority == "High"
        assert notification.read is False

    def test_default_priority(self):
        center = NotificationCenter()
        center.publish(TASK_CREATED, {"task_id": "a"})
        assert center.recent()[0].priority == "normal"

    def test_bounded(self):
        """Only the most recent maxlen notifications are kept."""
        center = NotificationCenter(maxlen=3)
        for i in range(5):
            center.publish(TASK_CREATED, {"task_id": str(i)})

        assert [n.task_id for n in center.recent()] == ["4", "3", "2"]

    def test_unstored_type_only_broadcast(self):
        center = NotificationCenter()
        received = []
        center.subscribe(received.append)

        center.publish("TYPING", {"user": "x"})

        assert center.recent() == []
        assert received[0]["type"] == "TYPING"


class TestSubscribers:
    """Tests for event fan-out."""

    def test_event_shape(self):
        center = NotificationCenter()
        received = []
        center.subscribe(received.append)

        event = center.publish(TASK_CREATED, {"task_id": "a"})

        assert received == [event]
        assert event["type"] == TASK_CREATED
        assert event["data"] == {"task_id": "a"}
        assert "timestamp" in event

    def test_unsubscribe(self):
        center = NotificationCenter()
        received = []
        unsubscribe = center.subscribe(received.append)

        unsubscribe()
        center.publish(TASK_CREATED, {"task_id": "a"})

        assert received == []

    def test_failing_subscriber_does_not_block_others(self):
        center = NotificationCenter()
        received = []

        def broken(event):
            raise RuntimeError("socket closed")

        center.subscribe(broken)
        center.subscribe(received.append)
        center.publish(TASK_CREATED, {"task_id": "a"})

        assert len(received) == 1


class TestReadState:
    """Tests for mark_read and clear."""

    def test_mark_read(self):
        center = NotificationCenter()
        received = []
        center.publish(TASK_CREATED, {"task_id": "a"})
        center.subscribe(received.append)
        notification_id = center.recent()[0].id

        updated = center.mark_read(notification_id)

        assert updated.read is True
        assert center.recent()[0].read is True
        assert received[0]["type"] == NOTIFICATION_UPDATED

    def test_mark_read_unknown(self):
        center = NotificationCenter()
        assert center.mark_read(42) is None

    def test_clear(self):
        center = NotificationCenter()
        received = []
        center.publish(TASK_CREATED, {"task_id": "a"})
        center.subscribe(received.append)

        center.clear()

        assert center.recent() == []
        assert received[0]["type"] == NOTIFICATIONS_CLEARED
