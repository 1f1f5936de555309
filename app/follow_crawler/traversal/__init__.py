"""
Concurrent traversal engine for the follow graph.

This package provides:

- TraversalEngine: worker pool, edge aggregator and shutdown coordinator
- CompletionTracker: outstanding-work counter used for termination detection
- TraversalErrorHandler: classification and accounting of per-identity failures
- run: blocking entry point that runs one traversal on a fresh event loop
"""

from .completion import CompletionTracker
from .engine import TraversalEngine, run
from .error_handler import TraversalErrorHandler

__all__ = [
    "TraversalEngine",
    "CompletionTracker",
    "TraversalErrorHandler",
    "run",
]
