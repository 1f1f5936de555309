"""
Page fetchers for the follow-graph crawler.

- ProfilePageFetcher: scrapes profile and following pages over HTTP (aiohttp)
- StaticGraphFetcher: serves a fixed graph from memory or a graph file
- ProfileParser: BeautifulSoup extraction of profile attributes and follows
"""

from .client import ProfilePageFetcher
from .parser import ProfileParser
from .static import StaticGraphFetcher

__all__ = [
    "ProfilePageFetcher",
    "ProfileParser",
    "StaticGraphFetcher",
]
