"""Shared test fixtures and fakes."""

from __future__ import annotations

import asyncio
import copy
import json
from collections.abc import Callable
from typing import Any

import pytest

from ideascope.cache.manager import CacheManager
from ideascope.config.settings import CacheSettings, Settings
from ideascope.models.document import Document, DocumentMetadata, SearchResult, SearchResultMetadata, extract_domain
from ideascope.models.idea import NormalizedIdea
from ideascope.models.query import SearchOptions
from ideascope.providers.base.exceptions import QueryError
from ideascope.providers.base.provider import SearchProvider
from ideascope.retrieval.extract import compute_hash
from ideascope.store.memory import InMemoryDocumentStore

# ── Analysis payloads (valid against their schemas) ──────────────────────────

LONG_TEXT = (
    "Knowledge workers increasingly rely on AI-assisted note taking to capture, organise and retrieve "
    "information across meetings, documents and chats. Demand is driven by hybrid work, the volume of "
    "unstructured information and maturing language models, while incumbents compete on integrations."
)


def market_payload() -> dict[str, Any]:
    return {
        "market_size": {
            "current_size": "$7.5B in 2024 [Source: https://example.com/report]",
            "growth_rate": "14% CAGR",
            "projected_size": "$14B by 2029",
        },
        "trends": [
            {"name": "Hybrid work", "description": "Distributed teams need shared notes", "impact": "High demand"},
            {"name": "LLM maturity", "description": "Summaries are now reliable", "impact": "Better UX"},
            {"name": "Tool consolidation", "description": "Buyers cut SaaS sprawl", "impact": "Bundling pressure"},
        ],
        "customer_needs": [
            {"need": "Fast capture", "pain_point": "Notes lost in chats", "current_solutions": "Manual notes"},
            {"need": "Retrieval", "pain_point": "Search misses context", "current_solutions": "Folder hierarchies"},
        ],
        "target_audience": {
            "primary_segment": "Knowledge workers at startups",
            "demographics": "25-45, urban",
            "psychographics": "Productivity focused",
            "size": "30M professionals",
        },
        "barriers": [{"barrier": "Incumbent bundling", "severity": "Medium", "mitigation": "Deep integrations"}],
        "citations": ["https://example.com/report"],
        "confidence": 72,
        "summary": LONG_TEXT,
    }


def tam_sam_payload() -> dict[str, Any]:
    return {
        "tam": {
            "value": "$14B",
            "calculation": "Global productivity software x note-taking share",
            "sources": ["https://example.com/report"],
            "assumptions": ["Note taking is 10% of productivity spend"],
        },
        "sam": {
            "value": "$2B",
            "calculation": "TAM x English-speaking SMB share",
            "sources": [],
            "assumptions": ["SMBs are 15% of spend"],
            "percentage": "14%",
        },
        "som": {
            "value": "$40M",
            "calculation": "SAM x 2% capture",
            "sources": [],
            "assumptions": ["2% capture in three years"],
            "percentage": "2%",
            "timeline": "3 years",
        },
        "market_growth": {"cagr": "14%", "factors": ["Hybrid work", "AI adoption"]},
        "confidence": 65,
        "methodology": "top-down",
        "analysis": LONG_TEXT,
    }


def competitor_payload() -> dict[str, Any]:
    leader = {
        "description": "Established workspace",
        "strengths": ["Brand", "Integrations"],
        "weaknesses": ["Complex", "Slow AI rollout"],
        "threat": "High",
    }
    return {
        "market_leaders": [{"name": "Notion", **leader}, {"name": "Evernote", **leader, "threat": "Medium"}],
        "emerging_players": [
            {"name": "Mem", "description": "AI-first notes", "unique_value": "Self-organising", "threat": "Low"}
        ],
        "differentiation_opportunities": [
            {"area": "Meetings", "strategy": "Auto-capture calls", "impact": "High"},
            {"area": "Privacy", "strategy": "On-device models", "impact": "Medium"},
            {"area": "Retrieval", "strategy": "Semantic search", "impact": "High"},
        ],
        "competitive_advantages": [
            {"advantage": "Data moat", "sustainability": "Medium", "development_needs": "Usage growth"},
            {"advantage": "Integrations", "sustainability": "High", "development_needs": "Partnerships"},
        ],
        "citations": [],
        "confidence": 70,
        "summary": LONG_TEXT,
    }


def feasibility_payload() -> dict[str, Any]:
    return {
        "technical": {
            "complexity": "Medium",
            "explanation": "Uses hosted LLMs",
            "required_technologies": ["LLM APIs"],
            "development_timeline": "6 months",
            "technical_risks": ["Model costs"],
            "score": 7,
        },
        "operational": {
            "complexity": "Low",
            "explanation": "Small team",
            "key_requirements": ["Support"],
            "operational_risks": ["Churn"],
            "score": 8,
        },
        "financial": {
            "startup_costs": "$500k",
            "monthly_burn_rate": "$60k",
            "break_even_timeframe": "30 months",
            "key_assumptions": ["$10 ARPU", "5% conversion"],
            "score": 6,
        },
        "regulatory": {"compliance_complexity": "Medium", "score": 7},
        "market": {
            "product_market_fit": "Plausible",
            "adoption_barriers": ["Switching costs"],
            "market_readiness": "High",
            "score": 7,
        },
        "overall_feasibility_score": 7,
        "confidence": 68,
        "summary": LONG_TEXT,
    }


def strategy_payload() -> dict[str, Any]:
    return {
        "go_to_market": {
            "initial_target_segment": "Startup product teams",
            "value_proposition": "Never lose a decision again",
            "channels": ["Product Hunt", "SEO", "Slack community"],
            "messaging": "Notes that write themselves",
            "timeline": "Q1-Q2",
        },
        "competitive_positioning": {
            "positioning_statement": "The AI notebook for fast teams",
            "key_differentiators": ["Meeting capture", "Semantic recall", "Privacy"],
            "messaging_angles": ["Save time", "Remember everything"],
        },
        "monetization": {
            "recommended_model": "Freemium",
            "pricing_strategy": "$10 per seat per month",
            "revenue_streams": ["Subscriptions", "Enterprise plans"],
            "unit_economics": "LTV/CAC of 3",
        },
        "growth_strategy": {
            "customer_acquisition": ["Content", "Referrals", "Integrations marketplace"],
            "retention": ["Weekly digests", "Team workspaces"],
            "expansion": ["Enterprise", "Verticals"],
            "key_metrics": ["WAU", "Retention", "Seats per account"],
        },
        "partnerships": [
            {
                "partner_type": "Video conferencing",
                "potential_partners": ["Zoom", "Google Meet"],
                "collaboration_model": "Marketplace app",
                "strategic_value": "Distribution",
            },
            {
                "partner_type": "Chat",
                "potential_partners": ["Slack", "Teams"],
                "collaboration_model": "Integration",
                "strategic_value": "Daily usage",
            },
        ],
        "confidence": 66,
        "summary": LONG_TEXT + " " + LONG_TEXT,
    }


def idea_profile_payload() -> dict[str, Any]:
    return {
        "title": "AI notebook that captures meetings",
        "description": "An AI notebook that records meetings and turns them into searchable notes.",
        "industry": "Productivity software",
        "target_audience": "Knowledge workers at startups",
        "key_features": ["meeting transcription", "semantic search", "auto summaries"],
        "keywords": ["ai notes", "meeting notes", "note taking", "notion.com", "otter.ai", "productivity"],
    }


# Schema title → valid payload
PAYLOADS: dict[str, Callable[[], dict[str, Any]]] = {
    "MarketInsights": market_payload,
    "TamSamSom": tam_sam_payload,
    "CompetitorLandscape": competitor_payload,
    "FeasibilityAssessment": feasibility_payload,
    "StrategyRecommendations": strategy_payload,
    "IdeaProfile": idea_profile_payload,
}


# ── Fakes ────────────────────────────────────────────────────────────────────


class FakeCompletion:
    """Scripted completion provider keyed by the requested schema title.

    ``scripts[title]`` is a list consumed one entry per call: a string is
    returned as-is, an exception is raised. Once a script is exhausted (or
    absent) the valid payload for the schema is returned.
    """

    def __init__(
        self,
        scripts: dict[str, list[Any]] | None = None,
        delays: dict[str, float] | None = None,
        model: str = "fake-model",
    ) -> None:
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.delays = delays or {}
        self.model = model
        self.calls: list[dict[str, Any]] = []

    def model_for(self, tier: str) -> str:
        return f"{self.model}-{tier}"

    def calls_for(self, title: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["title"] == title]

    async def complete(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any] | None = None,
        tier: str = "heavy",
    ) -> str:
        title = (schema or {}).get("title", "")
        self.calls.append({"title": title, "system_prompt": system_prompt, "user_prompt": user_prompt, "tier": tier})
        if self.delays.get(title):
            await asyncio.sleep(self.delays[title])
        script = self.scripts.get(title)
        if script:
            entry = script.pop(0)
            if isinstance(entry, BaseException):
                raise entry
            return entry
        return json.dumps(PAYLOADS[title]())


class FakeSearchProvider(SearchProvider):
    """In-memory search provider returning canned hits per query."""

    def __init__(
        self,
        hits: dict[str, list[str]] | Callable[[str], list[str]] | None = None,
        *,
        provider_name: str = "perplexity",
        enabled: bool = True,
        fail: bool = False,
        **kwargs: Any,
    ) -> None:
        self._hits = hits or {}
        self._name = provider_name
        self._enabled = enabled
        self._fail = fail
        self.queries: list[str] = []
        self.options: list[SearchOptions | None] = []

    @property
    def name(self) -> str:
        return self._name

    async def initialize(self) -> None:
        return None

    async def shutdown(self) -> None:
        return None

    def is_enabled(self) -> bool:
        return self._enabled

    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        self.queries.append(query)
        self.options.append(options)
        if self._fail:
            raise QueryError(f"{self._name} search failed")
        urls = self._hits(query) if callable(self._hits) else self._hits.get(query, [])
        return [self.normalize_result(url, i) for i, url in enumerate(urls)]

    def normalize_result(self, raw: Any, index: int = 0) -> SearchResult:
        return SearchResult(
            url=raw,
            title=f"Result {index}",
            metadata=SearchResultMetadata(domain=extract_domain(raw), source=self._name),
        )


class FakeFetcher:
    """Content fetcher serving canned page text; unknown URLs come back as errors."""

    def __init__(self, pages: dict[str, str] | None = None, blocked: set[str] | None = None) -> None:
        self.pages = pages or {}
        self.blocked = blocked or set()
        self.fetched: list[str] = []

    async def fetch_and_extract(self, url: str) -> Document:
        self.fetched.append(url)
        domain = extract_domain(url)
        if url in self.blocked:
            return Document(url=url, metadata=DocumentMetadata(domain=domain, blocked=True))
        if url not in self.pages:
            return Document(url=url, metadata=DocumentMetadata(domain=domain, error=True, error_message="HTTP 404"))
        content = self.pages[url]
        return Document(
            url=url,
            title=f"Page {domain}",
            content=content,
            content_hash=compute_hash(content),
            metadata=DocumentMetadata(domain=domain),
        )


class RecordingEventSink:
    """Event sink that keeps every event in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def emit(self, event: str, job_id: str, data: dict[str, Any] | None = None) -> None:
        self.events.append((event, job_id, copy.deepcopy(data or {})))

    @property
    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]

    def data_for(self, name: str) -> list[dict[str, Any]]:
        return [data for event, _, data in self.events if event == name]


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
        ai={"api_key": "test-key"},
        analysis={"retry_base_delay": 0.0},
    )


@pytest.fixture
def idea() -> NormalizedIdea:
    """The 'AI note app' idea."""
    return NormalizedIdea(
        title="AI note app",
        description="An AI notebook that captures meetings and turns them into searchable notes.",
        industry="Productivity software",
        targetAudience="Knowledge workers",
        keyFeatures=["meeting transcription", "semantic search", "auto summaries"],
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def cache() -> CacheManager:
    return CacheManager(CacheSettings(backend="memory"))


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def fake_completion_cls() -> type[FakeCompletion]:
    return FakeCompletion


@pytest.fixture
def fake_search_cls() -> type[FakeSearchProvider]:
    return FakeSearchProvider


@pytest.fixture
def fake_fetcher_cls() -> type[FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def payloads() -> dict[str, Callable[[], dict[str, Any]]]:
    return PAYLOADS
