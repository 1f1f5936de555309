"""
Profile and following-page parsing for the follow-graph crawler.

Extracts profile attributes and followed handles from rendered profile
pages with BeautifulSoup.
"""

import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from ...schema.people import PlanTier, ProfileAttributes
from ..core.exceptions import ProfileParseError
from ..core.types import IdentityKey

logger = logging.getLogger(__name__)

IMAGE_STYLE_PATTERN = re.compile(r'background-image:\s*url\("([^>]+?)"\);?')

NAME_SELECTOR = "h2.profileHeaderInfo__userName"
IMAGE_SELECTOR = "div.profileHeaderInfo__avatar span.sc-artwork"
VERIFIED_SELECTOR = "h2.profileHeaderInfo__userName span.verifiedBadge"
PLAN_SELECTOR = "h3.profileHeaderInfo__additional a.creatorBadge"
TRACK_COUNT_SELECTOR = "article.infoStats table tr > td:nth-of-type(3) a div"
FOLLOWING_LINK_SELECTOR = "div.userBadgeListItem__title a[href]"


class ProfileParser:
    """Parser for profile and following pages"""

    def __init__(self):
        self.stats = {
            "profiles_parsed": 0,
            "following_pages_parsed": 0,
            "failed_parses": 0,
        }

    def parse_profile(self, html: str, handle: IdentityKey) -> ProfileAttributes:
        """
        Parse a profile page into ProfileAttributes.

        Args:
            html: Profile page HTML
            handle: Handle the page belongs to (for error messages)

        Returns:
            ProfileAttributes for the profile

        Raises:
            ProfileParseError: If a required element is missing or malformed
        """
        soup = BeautifulSoup(html, "html.parser")
        # Read before _extract_name strips the badge from the heading
        verified = soup.select_one(VERIFIED_SELECTOR) is not None
        try:
            attrs = ProfileAttributes(
                display_name=self._extract_name(soup, handle),
                image_url=self._extract_image_url(soup, handle),
                verified=verified,
                plan_tier=self._extract_plan(soup),
                content_count=self._extract_track_count(soup, handle),
            )
        except ProfileParseError:
            self.stats["failed_parses"] += 1
            raise

        self.stats["profiles_parsed"] += 1
        logger.debug(f"Parsed profile for {handle}", extra={"handle": handle, "plan": attrs.plan_tier.value})
        return attrs

    def parse_following(self, html: str, handle: IdentityKey) -> List[IdentityKey]:
        """
        Extract followed handles from a following page, in page order.

        Args:
            html: Following page HTML
            handle: Handle the page belongs to

        Returns:
            List of followed handles with the leading slash removed
        """
        soup = BeautifulSoup(html, "html.parser")
        follows: List[IdentityKey] = []
        for link in soup.select(FOLLOWING_LINK_SELECTOR):
            href = link.get("href")
            if not isinstance(href, str):
                continue
            followee = href.removeprefix("/").strip()
            if followee:
                follows.append(followee)

        self.stats["following_pages_parsed"] += 1
        logger.debug(f"Parsed {len(follows)} followed users for {handle}")
        return follows

    def _extract_name(self, soup: BeautifulSoup, handle: IdentityKey) -> str:
        element = soup.select_one(NAME_SELECTOR)
        if element is None:
            raise ProfileParseError(handle, "missing display name")

        # The verified badge lives inside the name heading
        for badge in element.select("span.verifiedBadge"):
            badge.extract()
        return element.get_text(" ", strip=True)

    def _extract_image_url(self, soup: BeautifulSoup, handle: IdentityKey) -> str:
        element = soup.select_one(IMAGE_SELECTOR)
        style = element.get("style") if isinstance(element, Tag) else None
        if not isinstance(style, str):
            raise ProfileParseError(handle, "user has no image")

        match = IMAGE_STYLE_PATTERN.search(style)
        if match is None:
            logger.warning(f"User {handle} has an artwork element without an image url")
            return ""
        return match.group(1)

    def _extract_plan(self, soup: BeautifulSoup) -> PlanTier:
        element = soup.select_one(PLAN_SELECTOR)
        title: Optional[str] = None
        if element is not None:
            value = element.get("title")
            title = value if isinstance(value, str) else None
        return PlanTier.from_badge_title(title)

    def _extract_track_count(self, soup: BeautifulSoup, handle: IdentityKey) -> int:
        element = soup.select_one(TRACK_COUNT_SELECTOR)
        if element is None:
            raise ProfileParseError(handle, "missing track count")

        text = element.get_text(strip=True).replace(",", "")
        try:
            return int(text)
        except ValueError as e:
            raise ProfileParseError(handle, f"failed to parse track count {text!r}", e)

    def get_stats(self):
        return dict(self.stats)
