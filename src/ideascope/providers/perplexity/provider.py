"""Perplexity provider — primary search via the Perplexity chat completions API.

Perplexity answers a query with generated text plus the web sources it cited.
The cited sources become search results; the answer text is attached to each
result as provider-supplied content.

The primary provider is required: ``initialize()`` raises
``ConfigurationError`` without an API key, and a query that still fails after
the retry budget raises ``QueryError``.

Usage::

    provider = PerplexityProvider(config=ProviderConfig(api_key="pplx-..."))
    await provider.initialize()
    results = await provider.search("ai note taking market size 2025")

API Reference: https://docs.perplexity.ai/api-reference/chat-completions
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import httpx

from ideascope.config.settings import ProviderConfig
from ideascope.core.retry import Err, ErrorKind, Ok, RetryPolicy, with_retry
from ideascope.models.document import SearchResult, SearchResultMetadata, extract_domain
from ideascope.models.query import SearchOptions
from ideascope.providers.base.exceptions import ConfigurationError, QueryError
from ideascope.providers.base.provider import SearchProvider
from ideascope.retrieval.limiter import AsyncRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.perplexity.ai"
DEFAULT_MODEL = "sonar"

_SYSTEM_PROMPT = (
    "You are a helpful research assistant. Provide comprehensive answers with relevant citations."
)

RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0)


def _parse_date(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class PerplexityProvider(SearchProvider):
    """Search provider backed by Perplexity's online models.

    Args:
        config: Provider configuration (API key, model, rate limit, timeout).
        client: Optional pre-built HTTP client (not closed on shutdown).
        sleep: Backoff sleep used between retries (injectable for tests).
        **kwargs: Extra keyword arguments (ignored, for config compat).
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **kwargs: Any,
    ) -> None:
        self.config = config or ProviderConfig()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._limiter = AsyncRateLimiter(
            rate_per_minute=self.config.rate_limit_per_minute,
            max_concurrent=1,
        )
        self._extra_kwargs = kwargs

    @property
    def name(self) -> str:
        return "perplexity"

    async def initialize(self) -> None:
        """Validate credentials and create the HTTP client.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        if not self.config.api_key:
            raise ConfigurationError(
                "Perplexity API key is required for the primary search provider. "
                "Set IDEASCOPE_SEARCH__PROVIDERS__PERPLEXITY__API_KEY."
            )
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url or DEFAULT_BASE_URL,
                timeout=self.config.timeout,
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
            )
            self._owns_client = True
        logger.info(
            "Perplexity provider initialized (model=%s, rate=%d/min)",
            self.config.model or DEFAULT_MODEL,
            self.config.rate_limit_per_minute,
        )

    async def shutdown(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def is_enabled(self) -> bool:
        return bool(self.config.api_key)

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """Ask Perplexity *query* and return its citations as search results.

        Raises:
            ConfigurationError: If the provider was not initialized.
            QueryError: If the request still fails after all retries, or fails
                with a non-retryable status.
        """
        if self._client is None:
            raise ConfigurationError("Perplexity provider not initialized. Call initialize() first.")

        options = options or SearchOptions()
        payload = self._build_payload(query, options)
        start = time.monotonic()

        async def attempt(n: int, last: Err | None) -> Ok[dict[str, Any]] | Err:
            if last is not None:
                logger.info("Perplexity retry %d/%d for %r", n - 1, RETRY_POLICY.max_attempts - 1, query)
            return await self._post(payload)

        outcome = await with_retry(attempt, RETRY_POLICY, sleep=self._sleep)
        if isinstance(outcome, Err):
            logger.error(
                "Perplexity search failed for %r after %d attempt(s): %s",
                query,
                outcome.attempts,
                outcome.message,
            )
            raise QueryError(f"Perplexity search failed: {outcome.message}") from outcome.cause

        results = self._parse_response(outcome.value)
        results = self._apply_options(results, options)
        logger.debug(
            "Perplexity search: query=%r, results=%d, took=%dms",
            query,
            len(results),
            int((time.monotonic() - start) * 1000),
        )
        return results

    def _build_payload(self, query: str, options: SearchOptions) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.config.model or DEFAULT_MODEL,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
            "max_tokens": int(self.config.extra.get("max_tokens", 2000)),
            "temperature": float(self.config.extra.get("temperature", 0.2)),
            "return_related_questions": False,
        }
        if options.include_domains:
            payload["search_domain_filter"] = list(options.include_domains)
        return payload

    async def _post(self, payload: dict[str, Any]) -> Ok[dict[str, Any]] | Err:
        assert self._client is not None
        try:
            async with self._limiter:
                response = await self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            return Err(ErrorKind.TIMEOUT, f"request timed out: {e}", cause=e)
        except httpx.HTTPError as e:
            return Err(ErrorKind.TRANSPORT, f"request failed: {e}", cause=e)

        status = response.status_code
        if status == 429 or status >= 500:
            return Err(ErrorKind.TRANSPORT, f"HTTP {status}: {response.text[:200]}")
        if status >= 400:
            return Err(ErrorKind.TRANSPORT, f"HTTP {status}: {response.text[:200]}", retryable=False)

        try:
            return Ok(response.json())
        except ValueError as e:
            return Err(ErrorKind.TRANSPORT, f"invalid JSON response: {e}", retryable=False, cause=e)

    # ── Normalization ────────────────────────────────────────────────────

    def _parse_response(self, data: dict[str, Any]) -> list[SearchResult]:
        answer = ""
        choices = data.get("choices") or []
        if choices:
            answer = (choices[0].get("message") or {}).get("content") or ""

        raw_hits: list[Any] = data.get("search_results") or data.get("citations") or []
        results: list[SearchResult] = []
        for index, raw in enumerate(raw_hits):
            if isinstance(raw, str):
                raw = {"url": raw}
            if not isinstance(raw, dict) or not (raw.get("url") or raw.get("link")):
                continue
            results.append(self.normalize_result({**raw, "answer": answer}, index))
        return results

    def normalize_result(self, raw: Any, index: int = 0) -> SearchResult:
        """Map a citation (URL string or ``search_results`` object) to a SearchResult.

        Earlier citations score higher: ``1.0 - 0.1 * index``, floored at 0.
        """
        if isinstance(raw, str):
            raw = {"url": raw}
        url = raw.get("url") or raw.get("link") or ""
        domain = extract_domain(url)
        score = raw.get("score")
        if score is None:
            score = max(1.0 - index * 0.1, 0.0)

        return SearchResult(
            url=url,
            title=raw.get("title") or domain,
            snippet=raw.get("snippet") or raw.get("text") or "",
            content=raw.get("answer") or None,
            metadata=SearchResultMetadata(
                domain=domain,
                source=self.name,
                score=float(score),
                published_date=_parse_date(raw.get("date") or raw.get("published_date")),
            ),
        )

    def _apply_options(self, results: list[SearchResult], options: SearchOptions) -> list[SearchResult]:
        if options.exclude_domains:
            excluded = {d.lower().removeprefix("www.") for d in options.exclude_domains}
            results = [r for r in results if r.metadata.domain not in excluded]
        limit = options.max_results or self.config.max_results
        return results[:limit]
