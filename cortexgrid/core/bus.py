"""Typed publish/subscribe bus for headset events.

Every decoded frame and every selection outcome is published here. Several
independent consumers (the selection engine, publishers, logging) subscribe
by event class without replacing each other.
"""

import logging
import threading
from typing import Callable, Dict, List, Type

from cortexgrid.core.events import HeadsetEvent


logger = logging.getLogger(__name__)


EventCallback = Callable[[HeadsetEvent], None]


class EventBus:
    """Routes events to the subscribers of their class.

    A subscriber registered for a base class receives every subclass too,
    so subscribing to ``HeadsetEvent`` observes the whole stream.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(MentalCommandEvent, engine.handle_command)
        >>> bus.subscribe(HeadsetEvent, lambda e: print(e))
        >>> bus.publish(event)

    Thread Safety:
        Subscription changes are guarded by a lock; publish iterates over a
        snapshot, so callbacks may subscribe or unsubscribe while running.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[Type[HeadsetEvent], List[EventCallback]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[HeadsetEvent], callback: EventCallback) -> None:
        """Register a callback for events of ``event_type`` and its subclasses."""
        with self._lock:
            callbacks = self._subscribers.setdefault(event_type, [])
            if callback not in callbacks:
                callbacks.append(callback)

    def unsubscribe(self, event_type: Type[HeadsetEvent], callback: EventCallback) -> None:
        """Remove a callback. Safe to call if it was never registered."""
        with self._lock:
            callbacks = self._subscribers.get(event_type)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)

    def subscriber_count(self, event_type: Type[HeadsetEvent]) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, ()))

    def publish(self, event: HeadsetEvent) -> None:
        """Deliver an event to every matching subscriber.

        Errors in individual callbacks are logged and do not prevent the
        remaining callbacks from receiving the event.
        """
        with self._lock:
            targets: List[EventCallback] = []
            for event_type in type(event).__mro__:
                targets.extend(self._subscribers.get(event_type, ()))

        for callback in targets:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Error in subscriber %r for %s", callback, type(event).__name__
                )

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self._subscribers.clear()
