"""
Follow-graph crawler

Walks the "follows" graph of a social platform breadth-first from a root
handle, records every discovered person and follow edge, and stops at a
fixed depth. Traversal runs on a pool of asyncio workers with a shared
visited set so each person is fetched at most once.
"""

from .traversal import TraversalEngine, run
from .utils.logging import setup_crawler_logger

__version__ = "0.1.0"
__all__ = ["TraversalEngine", "run", "setup_crawler_logger"]
