"""Publish/subscribe fan-out of engine events.

Each subscriber owns a bounded queue. Publishing never blocks: when a
subscriber's queue is full that one delivery is dropped and reported,
while the other subscribers and the publisher carry on.
"""

from __future__ import annotations

import logging
import queue
import threading

from .exceptions import ChannelBlockedError
from .models.events import Event

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 16


class EventDispatcher:
    """Registry of subscriber queues."""

    def __init__(self) -> None:
        self._subscribers: list[queue.Queue] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> queue.Queue:
        """Register a new subscriber and return its queue.

        The queue receives every event published from now on, and ``None``
        once the dispatcher is closed.
        """
        if maxsize < 1:
            raise ValueError(f"Queue size must be at least 1, got {maxsize}")
        q: queue.Queue = queue.Queue(maxsize=maxsize)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        """Stop delivering to ``q``. Unknown queues are ignored."""
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                logger.debug("Unsubscribe of unknown queue")

    def publish(self, event: Event) -> list[ChannelBlockedError]:
        """Deliver ``event`` to every subscriber without blocking.

        Returns:
            One error per subscriber whose queue was full.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        blocked: list[ChannelBlockedError] = []
        for q in subscribers:
            try:
                q.put_nowait(event)
            except queue.Full:
                err = ChannelBlockedError(f"Subscriber queue full, dropped {event!r}")
                logger.warning("%s", err)
                blocked.append(err)
        return blocked

    def close(self) -> None:
        """Remove all subscribers, signalling each with ``None`` where there is room."""
        with self._lock:
            subscribers, self._subscribers = self._subscribers, []
        for q in subscribers:
            try:
                q.put_nowait(None)
            except queue.Full:
                logger.debug("No room for end marker in subscriber queue")
