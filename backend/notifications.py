"""
In-process notification fan-out.

A NotificationCenter keeps the most recent task notifications in a bounded
buffer (newest first) and hands every published event to its subscribers.
"""
import itertools
import logging
import os
import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable, Optional

from models import Notification

logger = logging.getLogger(__name__)

NOTIFICATION_BUFFER_SIZE = int(os.getenv("NOTIFICATION_BUFFER_SIZE", "100"))

TASK_CREATED = "TASK_CREATED"
TASK_UPDATED = "TASK_UPDATED"
TASK_DELETED = "TASK_DELETED"
NOTIFICATION_UPDATED = "NOTIFICATION_UPDATED"
NOTIFICATIONS_CLEARED = "NOTIFICATIONS_CLEARED"

# Only these are kept in the buffer; everything is still broadcast
STORED_TYPES = frozenset({TASK_CREATED, TASK_UPDATED, TASK_DELETED, "BULK_UPDATE", "BULK_DELETE", "ERROR"})

Subscriber = Callable[[dict[str, Any]], None]


class NotificationCenter:
    def __init__(self, maxlen: int = NOTIFICATION_BUFFER_SIZE):
        self._buffer: deque[Notification] = deque(maxlen=maxlen)
        self._subscribers: list[Subscriber] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, type: str, data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Broadcast an event. Subscriber failures are logged, never raised."""
        data = data or {}
        timestamp = datetime.now().isoformat()
        event = {"type": type, "data": data, "timestamp": timestamp}
        logger.info("Broadcasting notification %s", type)

        with self._lock:
            if type in STORED_TYPES:
                self._buffer.appendleft(Notification(
                    id=next(self._ids),
                    type=type,
                    message=data.get("message"),
                    task_id=data.get("task_id"),
                    timestamp=timestamp,
                    priority=data.get("priority") or "normal",
                ))
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Notification subscriber failed for %s", type)
        return event

    def recent(self) -> list[Notification]:
        with self._lock:
            return list(self._buffer)

    def mark_read(self, notification_id: int) -> Optional[Notification]:
        with self._lock:
            for index, notification in enumerate(self._buffer):
                if notification.id == notification_id:
                    updated = notification.model_copy(update={"read": True})
                    self._buffer[index] = updated
                    break
            else:
                return None
        self.publish(NOTIFICATION_UPDATED, {"notification": updated.model_dump()})
        return updated

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()
        self.publish(NOTIFICATIONS_CLEARED, {"message": "All notifications cleared"})
