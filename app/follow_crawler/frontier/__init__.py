"""
Frontier primitives shared by the traversal engine.

- VisitedSet: atomic test-and-insert set of every identity ever scheduled
- BoundedChannel: closable FIFO used for the frontier queue and result channel
"""

from .channel import BoundedChannel
from .visited import VisitedSet

__all__ = [
    "BoundedChannel",
    "VisitedSet",
]
