import logging
import threading

logger = logging.getLogger("events")

class EventBus:
    """In-process callback fan-out for domain events.

    Handler errors are logged and swallowed here so whoever raised the
    event never sees a webhook problem.
    """

    def __init__(self):
        self._handlers = []
        self._lock = threading.Lock()

    def subscribe(self, handler):
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def unsubscribe(self, handler):
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def publish(self, event):
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event.event_type}")
