"""Tavily provider — optional secondary web search.

Tavily is behind a feature flag (``enabled``). When it is enabled without an
API key it disables itself with a warning. A disabled provider returns no
results, and so does any failed call: secondary results only supplement the
primary provider and must never fail a research run.

Usage::

    provider = TavilyProvider(config=ProviderConfig(enabled=True, api_key="tvly-..."))
    await provider.initialize()
    results = await provider.search("ai note taking competitors")
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any

from tavily import AsyncTavilyClient

from ideascope.config.settings import ProviderConfig
from ideascope.models.document import SearchResult, SearchResultMetadata, extract_domain
from ideascope.models.query import SearchOptions
from ideascope.providers.base.provider import SearchProvider
from ideascope.retrieval.limiter import AsyncRateLimiter

logger = logging.getLogger(__name__)


class TavilyProvider(SearchProvider):
    """Feature-flagged search provider backed by ``tavily.AsyncTavilyClient``.

    Args:
        config: Provider configuration (flag, API key, result cap, rate limit).
        client: Optional pre-built client exposing ``async search(**kwargs)``.
        **kwargs: Extra keyword arguments (ignored, for config compat).
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        client: Any = None,
        **kwargs: Any,
    ) -> None:
        self.config = config or ProviderConfig(enabled=False)
        self._client = client
        self._enabled = self.config.enabled
        self._limiter = AsyncRateLimiter(
            rate_per_minute=self.config.rate_limit_per_minute,
            max_concurrent=1,
        )
        self._extra_kwargs = kwargs

    @property
    def name(self) -> str:
        return "tavily"

    async def initialize(self) -> None:
        if not self._enabled:
            logger.info("Tavily disabled via feature flag")
            return
        if not self.config.api_key and self._client is None:
            logger.warning("Tavily is enabled but no API key is set. Disabling Tavily.")
            self._enabled = False
            return
        if self._client is None:
            self._client = AsyncTavilyClient(api_key=self.config.api_key)
        logger.info("Tavily provider initialized (max_results=%d)", self.config.max_results)

    async def shutdown(self) -> None:
        self._client = None

    def is_enabled(self) -> bool:
        return self._enabled

    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """Search Tavily; returns ``[]`` when disabled or on any failure."""
        if not self._enabled or self._client is None:
            logger.debug("Skipping Tavily search (disabled)")
            return []

        options = options or SearchOptions()
        kwargs: dict[str, Any] = {
            "query": query,
            "search_depth": self.config.extra.get("search_depth", "advanced"),
            "max_results": options.max_results or self.config.max_results,
        }
        if options.include_domains:
            kwargs["include_domains"] = list(options.include_domains)
        if options.exclude_domains:
            kwargs["exclude_domains"] = list(options.exclude_domains)

        start = time.monotonic()
        try:
            async with self._limiter:
                response = await self._client.search(**kwargs)
            raw_hits = response.get("results", []) if isinstance(response, dict) else []
            results = [
                self.normalize_result(raw, i)
                for i, raw in enumerate(raw_hits)
                if isinstance(raw, dict) and raw.get("url")
            ]
        except Exception as e:
            logger.warning("Tavily search failed for %r, returning no results: %s", query, e)
            return []

        logger.debug(
            "Tavily search: query=%r, results=%d, took=%dms",
            query,
            len(results),
            int((time.monotonic() - start) * 1000),
        )
        return results

    def normalize_result(self, raw: Any, index: int = 0) -> SearchResult:
        url = raw.get("url") or ""
        domain = extract_domain(url)
        content = raw.get("content") or ""

        published = None
        if raw.get("published_date"):
            try:
                published = datetime.fromisoformat(str(raw["published_date"]).replace("Z", "+00:00"))
            except ValueError:
                published = None

        return SearchResult(
            url=url,
            title=raw.get("title") or domain,
            snippet=content,
            content=content or None,
            metadata=SearchResultMetadata(
                domain=domain,
                source=self.name,
                score=float(raw.get("score") or 0.5),
                published_date=published,
            ),
        )
