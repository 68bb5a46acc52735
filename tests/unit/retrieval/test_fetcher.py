"""Tests for the content fetcher (robots policy, failures, extraction)."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from ideascope.config.settings import FetcherSettings
from ideascope.retrieval.fetcher import ContentFetcher
from ideascope.retrieval.limiter import AsyncRateLimiter

ROBOTS = "User-agent: *\nDisallow: /private\n"

PAGE = (
    "<html><head><title>Market Report</title></head><body><article>"
    "<p>The productivity software market reached $7.5B in 2024.</p>"
    "<p>Growth is driven by hybrid work.</p>"
    "</article></body></html>"
)


class _Site:
    """Routes requests for a fake site and counts them per path."""

    def __init__(self, robots: httpx.Response | Callable[[], httpx.Response] | None = None) -> None:
        self.robots = robots
        self.hits: dict[str, int] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.hits[path] = self.hits.get(path, 0) + 1
        if path == "/robots.txt":
            if self.robots is None:
                return httpx.Response(200, text=ROBOTS)
            return self.robots() if callable(self.robots) else self.robots
        if path == "/report":
            return httpx.Response(200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"})
        if path == "/private/plan":
            return httpx.Response(200, text=PAGE, headers={"content-type": "text/html"})
        if path == "/huge":
            body = "<html><body><p>" + ("word " * 5000) + "</p></body></html>"
            return httpx.Response(200, text=body, headers={"content-type": "text/html"})
        return httpx.Response(404, text="not found")


def _fetcher(site: _Site, **overrides: object) -> ContentFetcher:
    settings = FetcherSettings(**overrides)  # type: ignore[arg-type]
    client = httpx.AsyncClient(transport=httpx.MockTransport(site))
    return ContentFetcher(settings, client=client, limiter=AsyncRateLimiter(rate_per_minute=0, max_concurrent=3))


class TestFetchAndExtract:
    @pytest.mark.asyncio
    async def test_extracts_html(self) -> None:
        fetcher = _fetcher(_Site())

        doc = await fetcher.fetch_and_extract("https://www.example.com/report")

        assert doc.usable
        assert doc.title == "Market Report"
        assert "$7.5B in 2024" in doc.content
        assert doc.content_hash is not None
        assert doc.metadata.domain == "example.com"

    @pytest.mark.asyncio
    async def test_robots_disallow_blocks_without_fetching(self) -> None:
        site = _Site()
        fetcher = _fetcher(site)

        doc = await fetcher.fetch_and_extract("https://example.com/private/plan")

        assert doc.metadata.blocked
        assert doc.content == ""
        assert doc.content_hash is None
        assert not doc.usable
        assert "/private/plan" not in site.hits

    @pytest.mark.asyncio
    async def test_http_error_becomes_error_document(self) -> None:
        fetcher = _fetcher(_Site())

        doc = await fetcher.fetch_and_extract("https://example.com/missing")

        assert doc.metadata.error
        assert "404" in (doc.metadata.error_message or "")
        assert doc.content == ""
        assert not doc.usable

    @pytest.mark.asyncio
    async def test_network_error_becomes_error_document(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/robots.txt":
                return httpx.Response(404)
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = ContentFetcher(
            FetcherSettings(),
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            limiter=AsyncRateLimiter(rate_per_minute=0),
        )

        doc = await fetcher.fetch_and_extract("https://down.example.com/page")

        assert doc.metadata.error
        assert doc.metadata.domain == "down.example.com"

    @pytest.mark.asyncio
    async def test_content_truncated(self) -> None:
        fetcher = _fetcher(_Site(), max_content_chars=100)

        doc = await fetcher.fetch_and_extract("https://example.com/huge")

        assert len(doc.content) == 100

    @pytest.mark.asyncio
    async def test_requires_initialize_without_client(self) -> None:
        fetcher = ContentFetcher()
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = fetcher.client


class TestRobots:
    @pytest.mark.asyncio
    async def test_robots_fetched_once_per_origin(self) -> None:
        site = _Site()
        fetcher = _fetcher(site)

        await fetcher.fetch_and_extract("https://example.com/report")
        await fetcher.fetch_and_extract("https://example.com/missing")

        assert site.hits["/robots.txt"] == 1

    @pytest.mark.asyncio
    async def test_missing_robots_allows_everything(self) -> None:
        fetcher = _fetcher(_Site(robots=httpx.Response(404)))
        assert await fetcher.is_allowed("https://example.com/private/plan")

    @pytest.mark.asyncio
    async def test_server_error_allows_and_is_not_cached(self) -> None:
        site = _Site(robots=lambda: httpx.Response(503))
        fetcher = _fetcher(site)

        assert await fetcher.is_allowed("https://example.com/private/plan")
        assert await fetcher.is_allowed("https://example.com/private/plan")
        assert site.hits["/robots.txt"] == 2

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self) -> None:
        site = _Site()
        fetcher = _fetcher(site, robots_ttl_seconds=0)

        assert not await fetcher.is_allowed("https://example.com/private/plan")
        assert not await fetcher.is_allowed("https://example.com/private/plan")
        assert site.hits["/robots.txt"] == 2


class _CountingLimiter(AsyncRateLimiter):
    def __init__(self) -> None:
        super().__init__(rate_per_minute=0, max_concurrent=3)
        self.entries = 0

    async def acquire(self) -> None:
        self.entries += 1
        await super().acquire()


class TestMalformedUrls:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["https://exa\x00mple.com/a", "https://[::1/x"])
    async def test_invalid_url_becomes_error_document(self, url: str) -> None:
        fetcher = _fetcher(_Site())

        doc = await fetcher.fetch_and_extract(url)

        assert doc.metadata.error
        assert doc.content == ""
        assert not doc.usable

    @pytest.mark.asyncio
    async def test_invalid_robots_url_allows(self) -> None:
        fetcher = _fetcher(_Site())
        assert await fetcher.is_allowed("https://exa\x00mple.com/a")


class TestRequestBudget:
    @pytest.mark.asyncio
    async def test_robots_requests_count_against_limiter(self) -> None:
        site = _Site()
        limiter = _CountingLimiter()
        fetcher = ContentFetcher(
            FetcherSettings(),
            client=httpx.AsyncClient(transport=httpx.MockTransport(site)),
            limiter=limiter,
        )

        await fetcher.fetch_and_extract("https://example.com/report")

        assert site.hits == {"/robots.txt": 1, "/report": 1}
        assert limiter.entries == 2

    @pytest.mark.asyncio
    async def test_html_body_cut_at_byte_limit(self) -> None:
        fetcher = _fetcher(_Site(), max_body_bytes=2000)

        doc = await fetcher.fetch_and_extract("https://example.com/huge")

        assert doc.usable
        assert 0 < len(doc.content) <= 2000

    @pytest.mark.asyncio
    async def test_oversized_pdf_is_an_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/robots.txt":
                return httpx.Response(404)
            return httpx.Response(200, content=b"%PDF-1.4" + b"0" * 5000, headers={"content-type": "application/pdf"})

        fetcher = ContentFetcher(
            FetcherSettings(max_body_bytes=1000),
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            limiter=AsyncRateLimiter(rate_per_minute=0),
        )

        doc = await fetcher.fetch_and_extract("https://example.com/study.pdf")

        assert doc.metadata.error
        assert "exceeds 1000 bytes" in (doc.metadata.error_message or "")
