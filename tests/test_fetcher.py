"""Tests for the feed fetcher and its transport strategies."""

import asyncio

import httpx
import pytest

from wavelength.fetchers import (
    AllOriginsStrategy,
    CorsProxyStrategy,
    DirectStrategy,
    FeedFetcher,
    check_body,
    create_chain,
    create_strategy,
)
from wavelength.parser import parse_feed

from conftest import make_rss, rss_item

FEED_URL = "https://feeds.example/show.xml"
FEED_DOC = make_rss("Show A", [rss_item("Ep 1", "https://cdn.example/ep1.mp3", "First")])


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class SlowStrategy(DirectStrategy):
    name = "slow"

    async def fetch(self, client, feed_url):
        await asyncio.sleep(5)
        return await super().fetch(client, feed_url)


class TestStrategies:
    """Test request addressing and body extraction per strategy."""

    def test_direct_url(self) -> None:
        assert DirectStrategy().request_url(FEED_URL) == FEED_URL

    def test_relay_urls_encode_feed(self) -> None:
        assert AllOriginsStrategy().request_url(FEED_URL) == (
            "https://api.allorigins.win/get?url=https%3A%2F%2Ffeeds.example%2Fshow.xml"
        )
        assert CorsProxyStrategy().request_url(FEED_URL) == "https://corsproxy.io/?https%3A%2F%2Ffeeds.example%2Fshow.xml"

    def test_allorigins_unwraps_envelope(self) -> None:
        response = httpx.Response(200, json={"contents": FEED_DOC, "status": {"http_code": 200}})

        assert AllOriginsStrategy().extract_body(response) == FEED_DOC

    def test_allorigins_missing_contents(self) -> None:
        response = httpx.Response(200, json={"status": {"http_code": 404}})

        assert AllOriginsStrategy().extract_body(response) == ""

    def test_create_chain_keeps_order(self) -> None:
        chain = create_chain(["corsproxy", "direct"])

        assert [s.name for s in chain] == ["corsproxy", "direct"]

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown transport strategy"):
            create_strategy("smoke-signal")


class TestCheckBody:
    """Test response body sanity checks."""

    def test_short_body_rejected(self) -> None:
        assert check_body("<rss></rss>") == "body shorter than 100 characters"
        assert check_body("") is not None
        assert check_body(None) is not None

    def test_body_without_markers_rejected(self) -> None:
        assert check_body("<html>" + "x" * 200 + "</html>") == "body has no feed markers"

    @pytest.mark.parametrize("marker", ["<rss", "<feed", "<channel"])
    def test_markers_accepted(self, marker: str) -> None:
        assert check_body(marker + " " + "x" * 120) is None


class TestFeedFetcher:
    """Test the ordered fallback chain."""

    @pytest.mark.asyncio
    async def test_direct_success(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=FEED_DOC)

        async with client_for(handler) as client:
            fetcher = FeedFetcher(strategies=[DirectStrategy()], client=client)
            result = await fetcher.fetch_feed(FEED_URL)

        assert result.success
        assert result.strategy == "direct"
        assert result.podcast == parse_feed(FEED_DOC)

    @pytest.mark.asyncio
    async def test_short_body_falls_through_in_order(self) -> None:
        """A placeholder body from the first relay does not count as success."""
        hosts: list[str] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "corsproxy.io":
                return httpx.Response(200, text="<rss/>")
            return httpx.Response(200, json={"contents": FEED_DOC})

        async with client_for(handler) as client:
            fetcher = FeedFetcher(strategies=[CorsProxyStrategy(), AllOriginsStrategy()], client=client)
            result = await fetcher.fetch_feed(FEED_URL)

        assert hosts == ["corsproxy.io", "api.allorigins.win"]
        assert result.strategy == "allorigins"
        assert result.podcast == parse_feed(FEED_DOC)
        assert result.attempts == [("corsproxy", "body shorter than 100 characters")]

    @pytest.mark.asyncio
    async def test_error_status_and_exception_advance_chain(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "feeds.example":
                return httpx.Response(403, text="forbidden")
            if request.url.host == "api.allorigins.win":
                raise httpx.ConnectError("relay down", request=request)
            return httpx.Response(200, text=FEED_DOC)

        async with client_for(handler) as client:
            fetcher = FeedFetcher(strategies=create_chain(["direct", "allorigins", "corsproxy"]), client=client)
            result = await fetcher.fetch_feed(FEED_URL)

        assert result.strategy == "corsproxy"
        assert result.attempts[0] == ("direct", "status 403")
        assert result.attempts[1][0] == "allorigins"
        assert "relay down" in result.attempts[1][1]

    @pytest.mark.asyncio
    async def test_every_strategy_fails(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        async with client_for(handler) as client:
            fetcher = FeedFetcher(strategies=create_chain(["direct", "allorigins", "corsproxy"]), client=client)
            result = await fetcher.fetch_feed(FEED_URL)

        assert not result.success
        assert result.podcast is None
        assert result.reason == "all strategies failed"
        assert [name for name, _ in result.attempts] == ["direct", "allorigins", "corsproxy"]

    @pytest.mark.asyncio
    async def test_timeout_advances_chain(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=FEED_DOC)

        async with client_for(handler) as client:
            fetcher = FeedFetcher(strategies=[SlowStrategy(), DirectStrategy()], timeout=0.05, client=client)
            result = await fetcher.fetch_feed(FEED_URL)

        assert result.strategy == "direct"
        assert result.attempts[0][0] == "slow"
        assert result.attempts[0][1].startswith("timed out")

    @pytest.mark.asyncio
    async def test_parse_failure_skips_feed(self) -> None:
        calls: list[str] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.host)
            return httpx.Response(200, text=FEED_DOC)

        async with client_for(handler) as client:
            fetcher = FeedFetcher(
                strategies=[DirectStrategy(), CorsProxyStrategy()],
                client=client,
                parser=lambda raw: None,
            )
            result = await fetcher.fetch_feed(FEED_URL)

        assert not result.success
        assert result.reason.startswith("parse failed")
        assert calls == ["feeds.example"]
