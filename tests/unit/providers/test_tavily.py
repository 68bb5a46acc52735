"""Tests for the feature-flagged Tavily provider."""

from __future__ import annotations

from typing import Any

import pytest

from ideascope.config.settings import ProviderConfig
from ideascope.models.query import SearchOptions
from ideascope.providers.tavily.provider import TavilyProvider


class _FakeTavilyClient:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response if response is not None else {"results": []}
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def search(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _config(**overrides: Any) -> ProviderConfig:
    return ProviderConfig(**{"enabled": True, "api_key": "tvly-test", "rate_limit_per_minute": 0, **overrides})


class TestFeatureFlag:
    @pytest.mark.asyncio
    async def test_disabled_returns_nothing(self) -> None:
        client = _FakeTavilyClient({"results": [{"url": "https://a.com"}]})
        provider = TavilyProvider(_config(enabled=False), client=client)
        await provider.initialize()

        assert not provider.is_enabled()
        assert await provider.search("ai note taking") == []
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_enabled_without_key_disables_itself(self, caplog: pytest.LogCaptureFixture) -> None:
        provider = TavilyProvider(_config(api_key=None))
        await provider.initialize()

        assert not provider.is_enabled()
        assert await provider.search("ai note taking") == []
        assert "Disabling Tavily" in caplog.text

    def test_default_is_disabled(self) -> None:
        assert not TavilyProvider().is_enabled()


class TestSearch:
    @pytest.mark.asyncio
    async def test_results_normalized(self) -> None:
        client = _FakeTavilyClient(
            {
                "results": [
                    {
                        "url": "https://www.techcrunch.com/notes",
                        "title": "Notes startups raise",
                        "content": "Funding for AI note apps doubled.",
                        "score": 0.83,
                        "published_date": "2025-02-10T08:00:00Z",
                    },
                    {"title": "missing url"},
                    {"url": "https://example.com/plain"},
                ]
            }
        )
        provider = TavilyProvider(_config(max_results=4, extra={"search_depth": "basic"}), client=client)
        await provider.initialize()

        results = await provider.search("ai note taking funding")

        assert [r.url for r in results] == ["https://www.techcrunch.com/notes", "https://example.com/plain"]
        first, second = results
        assert first.metadata.source == "tavily"
        assert first.metadata.domain == "techcrunch.com"
        assert first.metadata.score == pytest.approx(0.83)
        assert first.metadata.published_date is not None
        assert first.snippet == "Funding for AI note apps doubled."
        assert second.metadata.score == 0.5
        assert second.title == "example.com"

        assert client.calls == [{"query": "ai note taking funding", "search_depth": "basic", "max_results": 4}]

    @pytest.mark.asyncio
    async def test_domain_options_forwarded(self) -> None:
        client = _FakeTavilyClient()
        provider = TavilyProvider(_config(), client=client)
        await provider.initialize()

        await provider.search("q", SearchOptions(max_results=3, include_domains=["a.com"], exclude_domains=["b.com"]))

        sent = client.calls[0]
        assert sent["max_results"] == 3
        assert sent["include_domains"] == ["a.com"]
        assert sent["exclude_domains"] == ["b.com"]

    @pytest.mark.asyncio
    async def test_failure_returns_nothing(self) -> None:
        provider = TavilyProvider(_config(), client=_FakeTavilyClient(error=RuntimeError("quota exceeded")))
        await provider.initialize()

        assert await provider.search("ai note taking") == []
