"""
Visited set for at-most-once scheduling of identities.
"""

import logging
import threading
from typing import FrozenSet, Iterable, Set

from ..core.types import IdentityKey

logger = logging.getLogger(__name__)


class VisitedSet:
    """
    Set of identity keys ever admitted to the frontier.

    Membership is permanent for the lifetime of a run. `admit` is an atomic
    test-and-insert guarded by a lock, so callers need no locking of their own
    whether they run on the event loop or on executor threads.
    """

    def __init__(self, initial: Iterable[IdentityKey] = ()):
        self._lock = threading.Lock()
        self._keys: Set[IdentityKey] = set(initial)

        self.stats = {"admit_calls": 0, "admitted": 0, "rejected": 0}

    def admit(self, key: IdentityKey) -> bool:
        """
        Insert a key if absent.

        Args:
            key: Identity key to schedule

        Returns:
            True if this call inserted the key, False if it was already present
        """
        with self._lock:
            self.stats["admit_calls"] += 1
            if key in self._keys:
                self.stats["rejected"] += 1
                return False
            self._keys.add(key)
            self.stats["admitted"] += 1

        logger.debug(f"Admitted {key} to visited set")
        return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def snapshot(self) -> FrozenSet[IdentityKey]:
        """Get an immutable copy of the current membership"""
        with self._lock:
            return frozenset(self._keys)
