"""Tests for the HTTP profile page fetcher against a local aiohttp server."""

import asyncio
import socket

import pytest
from aiohttp import web
from aiohttp import test_utils
from app.follow_crawler.config.settings import CrawlerSettings
from app.follow_crawler.core.exceptions import FetchError
from app.follow_crawler.fetcher import ProfilePageFetcher

PROFILE_HTML = """
<html><body>
  <div class="profileHeaderInfo__avatar">
    <span class="sc-artwork" style='background-image: url("https://i1.example.com/alice.jpg");'></span>
  </div>
  <h2 class="profileHeaderInfo__userName">Alice</h2>
  <article class="infoStats"><table><tr>
    <td><a><div>10</div></a></td><td><a><div>2</div></a></td><td><a><div>42</div></a></td>
  </tr></table></article>
</body></html>
"""

FOLLOWING_HTML = """
<div class="userBadgeListItem__title"><a href="/bob">Bob</a></div>
<div class="userBadgeListItem__title"><a href="/carol">Carol</a></div>
"""


def make_app(seen_agents):
    async def profile(request):
        seen_agents.append(request.headers.get("User-Agent"))
        if request.match_info["handle"] != "alice":
            return web.Response(status=404, text="not found")
        return web.Response(text=PROFILE_HTML, content_type="text/html")

    async def following(request):
        return web.Response(text=FOLLOWING_HTML, content_type="text/html")

    app = web.Application()
    app.router.add_get("/{handle}", profile)
    app.router.add_get("/{handle}/following", following)
    return app


def make_settings(base_url):
    return CrawlerSettings(platform_url=base_url, user_agent="FollowCrawlerTest/0.1")


def test_fetch_profile_and_follows():
    seen_agents = []

    async def scenario():
        server = test_utils.TestServer(make_app(seen_agents), host="127.0.0.1")
        await server.start_server()
        try:
            async with ProfilePageFetcher(make_settings(f"http://127.0.0.1:{server.port}/")) as fetcher:
                attrs = await fetcher.fetch_profile("alice")
                follows = await fetcher.fetch_edges("alice")
                stats = fetcher.get_stats()
        finally:
            await server.close()
        return attrs, follows, stats

    attrs, follows, stats = asyncio.run(scenario())

    assert attrs.display_name == "Alice"
    assert attrs.image_url == "https://i1.example.com/alice.jpg"
    assert attrs.content_count == 42
    assert follows == ["bob", "carol"]
    assert seen_agents == ["FollowCrawlerTest/0.1"]
    assert stats["requests_successful"] == 2
    assert stats["parser"]["profiles_parsed"] == 1


def test_http_error_status_raises_fetch_error():
    async def scenario():
        server = test_utils.TestServer(make_app([]), host="127.0.0.1")
        await server.start_server()
        try:
            async with ProfilePageFetcher(make_settings(f"http://127.0.0.1:{server.port}")) as fetcher:
                with pytest.raises(FetchError) as exc_info:
                    await fetcher.fetch_profile("mallory")
                return exc_info.value, fetcher.get_stats()
        finally:
            await server.close()

    error, stats = asyncio.run(scenario())

    assert error.status_code == 404
    assert error.handle == "mallory"
    assert stats["requests_failed"] == 1


def test_connection_refused_raises_fetch_error():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    async def scenario():
        async with ProfilePageFetcher(make_settings(f"http://127.0.0.1:{port}")) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch_profile("alice")
            return exc_info.value

    error = asyncio.run(scenario())

    assert error.status_code is None
    assert error.original_error is not None


def test_timeout_raises_fetch_error():
    class TimingOutSession:
        closed = False

        def get(self, url):
            raise asyncio.TimeoutError()

        async def close(self):
            self.closed = True

    async def scenario():
        fetcher = ProfilePageFetcher(make_settings("http://127.0.0.1:1"))
        fetcher._session = TimingOutSession()
        try:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch_edges("alice")
        finally:
            await fetcher.close()
        return exc_info.value

    error = asyncio.run(scenario())

    assert isinstance(error.original_error, asyncio.TimeoutError)
