import asyncio
import logging
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Queued after the last item once the sending side is closed
_END_OF_STREAM = object()


class Channel(Generic[T]):
    """
    Unbounded queue owned by one event loop.
    Items may be sent from the loop itself or from any other thread.
    send() reports False once either side has been closed, which is how
    producers learn that nobody is listening any more.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._sender_closed = False
        self._receiver_closed = False

    @property
    def is_closed(self) -> bool:
        return self._sender_closed or self._receiver_closed

    def send(self, item: T) -> bool:
        if self.is_closed:
            return False
        if not self._put(item):
            self._receiver_closed = True
            return False
        return True

    def close(self):
        """Close the sending side. The receiver sees end-of-stream after draining."""
        if self._sender_closed:
            return
        self._sender_closed = True
        self._put(_END_OF_STREAM)

    def close_receiver(self):
        """Called by the consumer when it stops listening."""
        self._receiver_closed = True

    def _put(self, item: Any) -> bool:
        # Always go through the loop so items sent from other threads keep their order
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Owning loop is closed
            logger.debug("Channel loop closed, dropping item")
            return False
        return True

    async def recv(self) -> Optional[T]:
        """Next item, or None once the sender closed and the queue is drained."""
        if self._receiver_closed:
            return None
        item = await self._queue.get()
        if item is _END_OF_STREAM:
            self._receiver_closed = True
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        item = await self.recv()
        if item is None:
            raise StopAsyncIteration
        return item
