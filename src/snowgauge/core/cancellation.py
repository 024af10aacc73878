import asyncio
import threading
import time

# Granularity of the async sleep poll
POLL_INTERVAL = 0.1


class CancellationToken:
    """
    Shared stop signal for the acquisition tasks.
    Set once with cancel(); later calls are no-ops. Safe to observe from the
    serial worker thread and from coroutines on the event loop.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Block up to `seconds`; returns True as soon as the token is cancelled."""
        return self._event.wait(timeout=max(0.0, seconds))

    async def sleep(self, seconds: float) -> bool:
        """Async sleep that wakes early on cancellation. Returns True if cancelled."""
        deadline = time.monotonic() + seconds
        while not self._event.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(POLL_INTERVAL, remaining))
        return True
