"""Bounded, closable message channel between a source and its consumer."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Final

from recall.core.errors import ChannelClosedError
from recall.models.message import Message

DEFAULT_CHANNEL_SIZE = 100

_CLOSED: Final = object()


class MessageChannel:
    """A bounded FIFO of :class:`Message` that its producer closes once.

    Capacity is enforced with a semaphore in front of an unbounded queue, so
    the close marker can always be enqueued even when the channel is full.

    Ownership rules:

    - Only the source writes to and closes the channel.
    - ``close()`` must be called exactly once; a second call raises
      :class:`ChannelClosedError` instead of passing silently.
    - Receivers get ``None`` once the channel is closed and empty.
    """

    def __init__(self, maxsize: int = DEFAULT_CHANNEL_SIZE) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self._maxsize = maxsize
        self._slots = asyncio.Semaphore(maxsize)
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        """Number of buffered messages."""
        return self._queue.qsize() - (1 if self._closed else 0)

    async def send(self, message: Message) -> None:
        """Enqueue *message*, waiting while the channel is full."""
        if self._closed:
            raise ChannelClosedError("send on closed channel")
        await self._slots.acquire()
        if self._closed:
            self._slots.release()
            raise ChannelClosedError("send on closed channel")
        self._queue.put_nowait(message)

    def close(self) -> None:
        """Signal that no more messages will be sent."""
        if self._closed:
            raise ChannelClosedError("close of closed channel")
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def receive(self) -> Message | None:
        """Next message, or ``None`` once the channel is closed and drained."""
        item = await self._queue.get()
        return self._unwrap(item)

    def receive_nowait(self) -> Message | None:
        """Next buffered message, or ``None`` if nothing is buffered."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return self._unwrap(item)

    def _unwrap(self, item: object) -> Message | None:
        if item is _CLOSED:
            # Keep the marker for any later receiver.
            self._queue.put_nowait(_CLOSED)
            return None
        self._slots.release()
        assert isinstance(item, Message)
        return item

    def __aiter__(self) -> AsyncIterator[Message]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Message]:
        while (message := await self.receive()) is not None:
            yield message
