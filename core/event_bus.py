"""
Event Bus

Minimal publish/subscribe hub. Delivery is synchronous on the publishing
thread, in subscription order, so a publisher that serializes its calls
also serializes what subscribers see.
"""

import logging
import threading
from typing import Any, Callable, Dict, List

ALL_EVENTS = "*"

EventCallback = Callable[[str, Any], None]


class EventBus:
    """
    Publish/subscribe dispatcher.

    Subscriber exceptions are logged and never reach the publisher.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe("item_updated", on_update)
        bus.publish("item_updated", event)
        unsubscribe()
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.subscribers: Dict[str, List[EventCallback]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, callback: EventCallback) -> Callable[[], None]:
        """
        Register callback for event_type ("*" for every event).

        Returns:
            Function that removes this subscription
        """
        with self._lock:
            self.subscribers.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(event_type, callback)

        return unsubscribe

    def unsubscribe(self, event_type: str, callback: EventCallback) -> None:
        with self._lock:
            callbacks = self.subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def publish(self, event_type: str, data: Any) -> None:
        """Send data to subscribers of event_type and of "*" """
        with self._lock:
            callbacks = list(self.subscribers.get(event_type, []))
            if event_type != ALL_EVENTS:
                callbacks.extend(self.subscribers.get(ALL_EVENTS, []))

        for callback in callbacks:
            try:
                callback(event_type, data)
            except Exception as e:
                self.logger.error(f"Error in {event_type} subscriber: {e}")

    def subscriber_count(self, event_type: str = ALL_EVENTS) -> int:
        with self._lock:
            return len(self.subscribers.get(event_type, []))

    def clear(self) -> None:
        with self._lock:
            self.subscribers.clear()
