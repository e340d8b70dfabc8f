from __future__ import annotations

import logging
import queue
import threading
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]


class EventChannel:
    """Bounded outbound queue of domain events.

    ``publish`` never blocks the caller: when the queue is full the event is
    dropped and logged. Handlers run only when ``dispatch_pending`` drains the
    queue, which the background scheduler does periodically.
    """

    def __init__(self, maxsize: int = 1000) -> None:
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=maxsize)
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)
        self._dispatch_lock = threading.Lock()
        self.dropped = 0

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: Any) -> bool:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning(
                "Event queue is full; dropping event",
                extra={"event": getattr(event, "name", type(event).__name__)},
            )
            return False
        return True

    def pending(self) -> int:
        return self._queue.qsize()

    def dispatch_pending(self, limit: int | None = None) -> int:
        """Deliver queued events to their handlers; returns how many were taken."""

        delivered = 0
        with self._dispatch_lock:
            while limit is None or delivered < limit:
                try:
                    event = self._queue.get_nowait()
                except queue.Empty:
                    break
                delivered += 1
                for handler in list(self._handlers.get(type(event), ())):
                    try:
                        handler(event)
                    except Exception:
                        logger.exception(
                            "Event handler failed",
                            extra={"event": getattr(event, "name", type(event).__name__)},
                        )
        return delivered
