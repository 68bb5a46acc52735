"""Content fetcher — polite download and text extraction of web documents.

Every fetch consults the host's robots.txt (cached per host), runs through a
shared rate limiter, and turns the response body into normalized plain text.
Ordinary failures never raise; they come back as a ``Document`` flagged with
``metadata.error`` or ``metadata.blocked`` so one bad URL cannot sink a
research run.

Usage::

    fetcher = ContentFetcher(settings.fetcher)
    await fetcher.initialize()
    doc = await fetcher.fetch_and_extract("https://example.com/report")
    await fetcher.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
import time
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx

from ideascope.config.settings import FetcherSettings
from ideascope.models.document import Document, DocumentMetadata, extract_domain
from ideascope.retrieval.extract import ExtractedText, compute_hash, extract_html, extract_pdf, normalize_whitespace
from ideascope.retrieval.limiter import AsyncRateLimiter

logger = logging.getLogger(__name__)


class ContentFetcher:
    """Fetch URLs and extract their main text.

    Args:
        settings: Fetcher configuration (user agent, rate, timeouts, limits).
        client: Optional pre-built HTTP client (not closed on shutdown).
        limiter: Optional rate limiter shared with other fetchers.
    """

    def __init__(
        self,
        settings: FetcherSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        limiter: AsyncRateLimiter | None = None,
    ) -> None:
        self.settings = settings or FetcherSettings()
        self._client = client
        self._owns_client = client is None
        self._limiter = limiter or AsyncRateLimiter(
            rate_per_minute=self.settings.rate_limit_per_minute,
            max_concurrent=self.settings.max_concurrent,
        )
        self._robots: dict[str, tuple[RobotFileParser, float]] = {}

    async def initialize(self) -> None:
        """Create the HTTP client if one was not injected."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                max_redirects=self.settings.max_redirects,
                timeout=self.settings.timeout,
                headers={"User-Agent": self.settings.user_agent},
            )
            self._owns_client = True
        logger.info(
            "Content fetcher initialized (rate=%d/min, concurrency=%d)",
            self.settings.rate_limit_per_minute,
            self.settings.max_concurrent,
        )

    async def shutdown(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._robots.clear()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("ContentFetcher not initialized. Call initialize() first.")
        return self._client

    # ── Fetch ────────────────────────────────────────────────────────────

    async def fetch_and_extract(self, url: str) -> Document:
        """Download *url* and return its normalized text as a ``Document``.

        Args:
            url: Absolute http(s) URL.

        Returns:
            A Document. Blocked or failed fetches have empty content,
            ``content_hash=None`` and ``metadata.blocked``/``metadata.error`` set.
        """
        domain = extract_domain(url)

        if not await self.is_allowed(url):
            logger.info("Fetch of %s disallowed by robots.txt", url)
            return Document(
                url=url,
                metadata=DocumentMetadata(
                    domain=domain,
                    blocked=True,
                    error_message="Disallowed by robots.txt",
                ),
            )

        try:
            async with self._limiter:
                async with self.client.stream("GET", url, timeout=self.settings.timeout) as response:
                    response.raise_for_status()
                    content_type = response.headers.get("content-type", "").lower()
                    encoding = response.encoding or "utf-8"
                    body, truncated = await self._read_body(response)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Fetch failed for %s: %s", url, e)
            return self._error_document(url, domain, f"Fetch failed: {e}")

        if truncated:
            if "pdf" in content_type:
                return self._error_document(
                    url, domain, f"PDF exceeds {self.settings.max_body_bytes} bytes"
                )
            logger.debug("Body of %s cut at %d bytes", url, self.settings.max_body_bytes)

        try:
            loop = asyncio.get_running_loop()
            extracted = await loop.run_in_executor(None, self._extract, content_type, body, encoding)
        except Exception as e:
            logger.warning("Extraction failed for %s: %s", url, e)
            return self._error_document(url, domain, f"Extraction failed: {e}")

        content = normalize_whitespace(extracted.text)[: self.settings.max_content_chars]
        logger.debug("Fetched %s (%s, %d chars)", url, content_type or "unknown type", len(content))

        return Document(
            url=url,
            title=normalize_whitespace(extracted.title),
            content=content,
            content_hash=compute_hash(content),
            metadata=DocumentMetadata(domain=domain, pages=extracted.pages),
        )

    async def _read_body(self, response: httpx.Response) -> tuple[bytes, bool]:
        """Read at most ``max_body_bytes`` of a streamed body; the flag marks a cut."""
        limit = self.settings.max_body_bytes
        chunks: list[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            chunks.append(chunk)
            size += len(chunk)
            if size > limit:
                return b"".join(chunks)[:limit], True
        return b"".join(chunks), False

    @staticmethod
    def _extract(content_type: str, body: bytes, encoding: str) -> ExtractedText:
        if "pdf" in content_type:
            return extract_pdf(body)
        return extract_html(body.decode(encoding, errors="replace"))

    @staticmethod
    def _error_document(url: str, domain: str, message: str) -> Document:
        return Document(
            url=url,
            metadata=DocumentMetadata(domain=domain, error=True, error_message=message),
        )

    # ── Robots ───────────────────────────────────────────────────────────

    async def is_allowed(self, url: str) -> bool:
        """Whether the bot's user agent may fetch *url* according to robots.txt."""
        try:
            parts = urlsplit(url)
        except ValueError:
            return True
        if not parts.scheme or not parts.netloc:
            return True

        origin = f"{parts.scheme}://{parts.netloc}".lower()
        parser = await self._robots_for(origin)
        if parser is None:
            return True
        return parser.can_fetch(self.settings.user_agent, url)

    async def _robots_for(self, origin: str) -> RobotFileParser | None:
        cached = self._robots.get(origin)
        now = time.monotonic()
        if cached is not None and cached[1] > now:
            return cached[0]

        robots_url = f"{origin}/robots.txt"
        try:
            async with self._limiter:
                response = await self.client.get(robots_url, timeout=self.settings.robots_timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("robots.txt unavailable for %s (%s), allowing", origin, e)
            return None

        if response.status_code >= 500:
            logger.debug("robots.txt for %s returned %d, allowing", origin, response.status_code)
            return None

        parser = RobotFileParser(robots_url)
        if response.status_code == 200:
            parser.parse(response.text.splitlines())
        else:
            parser.parse([])

        self._robots[origin] = (parser, now + self.settings.robots_ttl_seconds)
        return parser
