"""
HTTP page fetcher for platform profile pages.

Loads `<platform_url>/<handle>` for profile attributes and
`<platform_url>/<handle>/following` for the follow list. Both methods are
coroutines, so the traversal engine awaits them on its own event loop and
all workers share one aiohttp session.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp import ClientError, ClientTimeout, TCPConnector

from ...schema.people import ProfileAttributes
from ..config.settings import CrawlerSettings, get_cached_settings
from ..core.exceptions import FetchError, TraversalError
from ..core.types import IdentityKey
from .parser import ProfileParser

logger = logging.getLogger(__name__)


class ProfilePageFetcher:
    """
    Page fetcher that scrapes profile and following pages over HTTP.
    """

    def __init__(self, settings: Optional[CrawlerSettings] = None, parser: Optional[ProfileParser] = None):
        """
        Initialize the page fetcher.

        Args:
            settings: Optional crawler settings (uses cached settings if None)
            parser: Optional page parser (creates one if None)
        """
        self.settings = settings or get_cached_settings()
        self.parser = parser or ProfileParser()

        # Session is bound to the running event loop, created on first use
        self._session: Optional[aiohttp.ClientSession] = None

        self.stats = {
            "requests_made": 0,
            "requests_successful": 0,
            "requests_failed": 0,
            "bytes_downloaded": 0,
            "total_response_time": 0.0,
        }

        logger.info(f"Initialized profile page fetcher for {self.settings.platform_url}")

    async def close(self) -> None:
        """Close the HTTP session"""
        if self._session:
            await self._session.close()
            self._session = None

        logger.info("Profile page fetcher closed")

    async def __aenter__(self) -> "ProfilePageFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure HTTP session is created and open"""
        if self._session is None or self._session.closed:
            connector = TCPConnector(
                limit=self.settings.num_workers * 2,
                ttl_dns_cache=300,
                keepalive_timeout=30,
            )
            timeout = ClientTimeout(total=self.settings.request_timeout, connect=10)
            headers = {
                "User-Agent": self.settings.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en;q=0.9,*;q=0.5",
            }

            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=headers,
                raise_for_status=False,  # Status codes are checked in _get_page
            )
            logger.debug("Created new HTTP session")

        return self._session

    def profile_url(self, handle: IdentityKey) -> str:
        return f"{self.settings.platform_url}/{handle}"

    async def fetch_profile(self, key: IdentityKey) -> ProfileAttributes:
        """
        Fetch and parse a profile page.

        Raises:
            FetchError: If the page cannot be loaded
            ProfileParseError: If the page does not look like a profile
        """
        html = await self._get_page(key, self.profile_url(key))
        return self.parser.parse_profile(html, key)

    async def fetch_edges(self, key: IdentityKey) -> List[IdentityKey]:
        """
        Fetch the handles `key` follows.

        Only the server-rendered part of the following page is read; lists
        that load more entries on scroll are truncated to that first page.

        Raises:
            FetchError: If the page cannot be loaded
        """
        html = await self._get_page(key, f"{self.profile_url(key)}/following")
        return self.parser.parse_following(html, key)

    async def _get_page(self, handle: IdentityKey, url: str) -> str:
        """Perform a GET request and return the body text"""
        session = await self._ensure_session()
        start_time = time.time()
        self.stats["requests_made"] += 1

        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    raise FetchError(handle, f"HTTP {response.status} for {url}", status_code=response.status)
                body = await response.text()

        except TraversalError:
            self.stats["requests_failed"] += 1
            raise

        except (ClientError, asyncio.TimeoutError) as e:
            self.stats["requests_failed"] += 1
            raise FetchError(handle, f"HTTP request failed: {str(e) or type(e).__name__}", original_error=e) from e

        response_time = time.time() - start_time
        self.stats["requests_successful"] += 1
        self.stats["total_response_time"] += response_time
        self.stats["bytes_downloaded"] += len(body)

        logger.debug(
            f"Fetched {url}",
            extra={"url": url, "handle": handle, "response_time": response_time, "content_length": len(body)},
        )
        return body

    def get_stats(self) -> Dict[str, Any]:
        """Get HTTP fetcher statistics"""
        stats: Dict[str, Any] = dict(self.stats)

        if stats["requests_successful"] > 0:
            stats["average_response_time"] = stats["total_response_time"] / stats["requests_successful"]
        else:
            stats["average_response_time"] = 0.0
        stats["session_active"] = self._session is not None and not self._session.closed
        stats["parser"] = self.parser.get_stats()

        return stats


__all__ = ["ProfilePageFetcher"]
