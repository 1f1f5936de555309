"""
Bounded, closable channels used to hand work between engine tasks.

Both the frontier queue of pending identities and the result channel of
follow lists are instances of `BoundedChannel`. Senders suspend while the
channel is full and receivers suspend while it is empty; nothing is ever
dropped for capacity reasons. Closing wakes every waiter: pending senders
fail, receivers drain what is left and then stop.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Dict, Generic, TypeVar

from ..core.exceptions import ChannelClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedChannel(Generic[T]):
    """Multi-producer multi-consumer FIFO with an optional capacity bound"""

    def __init__(self, capacity: int = 0, name: str = "channel"):
        """
        Initialize the channel.

        Args:
            capacity: Maximum number of buffered items (0 or less means unbounded)
            name: Channel name used in logs and errors
        """
        self.capacity = capacity
        self.name = name

        self._items: Deque[T] = deque()
        self._closed = False
        self._condition = asyncio.Condition()

        self.stats = {"sent": 0, "received": 0, "send_waits": 0, "peak_depth": 0}

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return len(self._items)

    def empty(self) -> bool:
        return not self._items

    def full(self) -> bool:
        return self.capacity > 0 and len(self._items) >= self.capacity

    async def put(self, item: T) -> None:
        """
        Send an item, suspending while the channel is full.

        Raises:
            ChannelClosedError: If the channel is (or becomes) closed before the item is accepted
        """
        async with self._condition:
            if self.full() and not self._closed:
                self.stats["send_waits"] += 1
            while self.full() and not self._closed:
                await self._condition.wait()

            if self._closed:
                raise ChannelClosedError(self.name)

            self._items.append(item)
            self.stats["sent"] += 1
            if len(self._items) > self.stats["peak_depth"]:
                self.stats["peak_depth"] = len(self._items)
            self._condition.notify_all()

    async def get(self) -> T:
        """
        Receive the oldest item, suspending while the channel is empty.

        Raises:
            ChannelClosedError: If the channel is closed and fully drained
        """
        async with self._condition:
            while not self._items and not self._closed:
                await self._condition.wait()

            if not self._items:
                raise ChannelClosedError(self.name)

            item = self._items.popleft()
            self.stats["received"] += 1
            self._condition.notify_all()
            return item

    async def close(self) -> None:
        """
        Close the channel. Allowed exactly once.

        Raises:
            ChannelClosedError: If the channel was already closed
        """
        async with self._condition:
            if self._closed:
                raise ChannelClosedError(self.name)
            self._closed = True
            self._condition.notify_all()

        logger.debug(f"Closed channel {self.name} with {len(self._items)} buffered items")

    def __aiter__(self) -> "BoundedChannel[T]":
        return self

    async def __anext__(self) -> T:
        try:
            return await self.get()
        except ChannelClosedError:
            raise StopAsyncIteration

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            "name": self.name,
            "capacity": self.capacity,
            "depth": len(self._items),
            "closed": self._closed,
        }
