"""Bounded multi-producer/single-consumer event channel."""

import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class EventSender(Generic[T]):
    """Producer end of an :class:`EventChannel`."""

    def __init__(self, channel: "EventChannel[T]"):
        self._channel = channel
        self._closed = False

    async def send(self, event: T) -> None:
        """Put ``event`` on the channel, waiting while it is full."""
        if self._closed:
            raise RuntimeError("send on a closed sender")
        await self._channel._queue.put(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._channel._release()

    @property
    def closed(self) -> bool:
        return self._closed


class EventChannel(Generic[T]):
    """Bounded queue that knows when all of its producers are gone.

    ``recv()`` returns None once every sender has been closed and the
    buffer is empty.
    """

    def __init__(self, capacity: int):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._senders = 0
        self._no_senders = asyncio.Event()
        self._no_senders.set()

    def sender(self) -> EventSender[T]:
        self._senders += 1
        self._no_senders.clear()
        return EventSender(self)

    def _release(self) -> None:
        self._senders -= 1
        if self._senders == 0:
            self._no_senders.set()

    @property
    def open_senders(self) -> int:
        return self._senders

    async def recv(self) -> Optional[T]:
        while True:
            try:
                return self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            if self._no_senders.is_set():
                return None

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._no_senders.wait())
            try:
                await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                closer.cancel()
                if not getter.done():
                    getter.cancel()
            if getter.done() and not getter.cancelled():
                return getter.result()
