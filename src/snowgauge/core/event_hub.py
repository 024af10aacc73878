import asyncio
import logging
import threading
from typing import List, Optional

from snowgauge.core.channel import Channel
from snowgauge.core.models.reading import Reading

logger = logging.getLogger(__name__)


class Broadcaster:
    """
    Fans every published Reading out to all live subscribers.
    A subscriber is dropped the first time a delivery to it fails; there is
    no separate unsubscribe path.
    """

    def __init__(self):
        self._subscribers: List[Channel[Reading]] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Channel[Reading]:
        """Register a new outbound queue. It only sees readings published from now on."""
        subscriber: Channel[Reading] = Channel(loop)
        with self._lock:
            self._subscribers.append(subscriber)
            count = len(self._subscribers)
        logger.info(f"Registered new streaming client ({count} connected)")
        return subscriber

    def publish(self, reading: Reading):
        """Deliver to every subscriber and prune the dead ones in the same pass."""
        with self._lock:
            before = len(self._subscribers)
            self._subscribers = [s for s in self._subscribers if s.send(reading)]
            pruned = before - len(self._subscribers)
        if pruned:
            logger.info(f"Removed {pruned} disconnected client(s)")

    def close(self):
        """End every subscriber stream (process shutdown)."""
        with self._lock:
            subscribers, self._subscribers = self._subscribers, []
        for subscriber in subscribers:
            subscriber.close()
        if subscribers:
            logger.info(f"Closed {len(subscribers)} streaming client(s)")


# Global instance
broadcaster = Broadcaster()
