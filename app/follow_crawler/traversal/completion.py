"""
Completion tracking for a dynamically growing traversal.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class CompletionTracker:
    """
    Count of work units that still owe a completion signal.

    Any number of tasks may `add` and `done`; a single coordinator awaits
    `wait`, which returns once the count is back to zero. All calls happen on
    the event loop and none of them suspend between reading and writing the
    count, so updates are atomic with respect to other tasks.
    """

    def __init__(self):
        self._count = 0
        self._zero = asyncio.Event()
        self._zero.set()

        self.stats = {"added": 0, "completed": 0, "peak_outstanding": 0}

    @property
    def outstanding(self) -> int:
        return self._count

    def add(self, n: int = 1) -> None:
        """Register `n` new outstanding units"""
        if n < 0:
            raise ValueError(f"Cannot add a negative count: {n}")
        if n == 0:
            return

        self._count += n
        self._zero.clear()

        self.stats["added"] += n
        if self._count > self.stats["peak_outstanding"]:
            self.stats["peak_outstanding"] = self._count

    def done(self) -> None:
        """Signal completion of one outstanding unit"""
        if self._count <= 0:
            raise ValueError("Completion signalled with no outstanding work")

        self._count -= 1
        self.stats["completed"] += 1
        if self._count == 0:
            logger.debug("Completion tracker drained to zero")
            self._zero.set()

    async def wait(self) -> None:
        """Suspend until the outstanding count is zero"""
        while self._count > 0:
            await self._zero.wait()
