"""Research Orchestrator — from a normalized idea to a persisted ResearchPack.

Pipeline:
  1. Generate search queries from the idea
  2. Look up a cached pack for ``(idea_id, research_hash)``; return it on a hit
  3. Search every query with the primary provider (and the secondary, if enabled)
  4. Fetch the distinct result URLs concurrently, dropping blocked/failed/empty pages
  5. Deduplicate and rank the documents
  6. Persist the pack, cache it, and record its id on the job status
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from ideascope.cache.manager import CacheManager, research_cache_key
from ideascope.config.settings import ResearchSettings
from ideascope.models.document import Document, RankedDocument, SearchResult
from ideascope.models.query import SearchOptions
from ideascope.models.idea import NormalizedIdea
from ideascope.models.research import ResearchPack, SourceRef
from ideascope.observability.events import EventSink, NullEventSink, safe_emit
from ideascope.providers.base.provider import SearchProvider
from ideascope.retrieval.fetcher import ContentFetcher
from ideascope.retrieval.ranking import DedupeRanker, canonicalize_url
from ideascope.store.memory import DocumentStore

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 10
DOMAIN_SUFFIXES = (".com", ".org", ".io")

_WHITESPACE = re.compile(r"\s+")


def generate_queries(idea: NormalizedIdea, year: int | None = None) -> list[str]:
    """Build the search queries for *idea*.

    Queries of ``MIN_QUERY_LENGTH`` characters or fewer (typically templates
    whose fields were empty) and duplicates are dropped.

    Args:
        idea: The normalized idea.
        year: Year used in the market-trend query (defaults to the current year).
    """
    year = year or datetime.now(UTC).year
    features = " ".join(idea.key_features[:2])
    templates = [
        f"{idea.industry} market size growth trends {year}",
        f"{idea.title} competitors market analysis",
        f"{idea.target_audience} needs {idea.industry} solutions",
        f"{idea.industry} industry challenges opportunities",
        f"market demand {features} {idea.industry}",
        f"{idea.title} business model validation",
        f"{idea.industry} startup funding trends",
    ]

    queries: list[str] = []
    for template in templates:
        query = _WHITESPACE.sub(" ", template).strip()
        if len(query) > MIN_QUERY_LENGTH and query not in queries:
            queries.append(query)
    return queries


def keyword_domains(idea: NormalizedIdea) -> list[str]:
    """Domains named among the idea's keywords, used to scope the search.

    A keyword counts when it contains one of ``DOMAIN_SUFFIXES`` and no
    whitespace; a scheme, ``www.`` prefix and path are stripped.
    """
    domains: list[str] = []
    for keyword in idea.keywords:
        candidate = keyword.strip().lower()
        if not any(suffix in candidate for suffix in DOMAIN_SUFFIXES) or _WHITESPACE.search(candidate):
            continue
        if "//" in candidate:
            candidate = candidate.split("//", 1)[1]
        candidate = candidate.split("/", 1)[0].removeprefix("www.")
        if candidate and candidate not in domains:
            domains.append(candidate)
    return domains


def compute_research_hash(idea_id: str, queries: list[str]) -> str:
    """Fingerprint of an idea's research inputs, independent of query order."""
    payload = f"{idea_id}:{'|'.join(sorted(queries))}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


class ResearchOrchestrator:
    """Gather, clean and rank web evidence for an idea.

    Args:
        primary: Required search provider; its failures abort the run.
        fetcher: Content fetcher (bounds its own rate and concurrency).
        cache: Cache for whole ResearchPacks.
        store: Document store for packs and job status.
        secondary: Optional supplementary search provider.
        ranker: Deduplicator/ranker (default instance if omitted).
        settings: Research limits.
        cache_ttl: Pack lifetime in seconds (cache TTL and ``pack.ttl``).
    """

    def __init__(
        self,
        primary: SearchProvider,
        fetcher: ContentFetcher,
        cache: CacheManager,
        store: DocumentStore,
        *,
        secondary: SearchProvider | None = None,
        ranker: DedupeRanker | None = None,
        settings: ResearchSettings | None = None,
        cache_ttl: int = 259_200,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.fetcher = fetcher
        self.cache = cache
        self.store = store
        self.ranker = ranker or DedupeRanker()
        self.settings = settings or ResearchSettings()
        self.cache_ttl = cache_ttl

    async def run(
        self,
        idea: NormalizedIdea,
        idea_id: str,
        *,
        job_id: str | None = None,
        events: EventSink | None = None,
    ) -> ResearchPack:
        """Produce the ResearchPack for *idea*.

        Args:
            idea: The normalized idea.
            idea_id: Stable idea identifier (part of the cache key).
            job_id: Job whose status receives the pack id.
            events: Event sink for ``research:*`` events.

        Returns:
            The cached or freshly built ResearchPack.

        Raises:
            QueryError: If the primary provider fails for any query.
        """
        job_id = job_id or f"job_{uuid.uuid4().hex[:12]}"
        events = events or NullEventSink()
        start = time.monotonic()

        await safe_emit(events, "research:start", job_id, {"idea_id": idea_id, "title": idea.title})
        try:
            pack = await self._run(idea, idea_id, job_id, events)
        except Exception as e:
            logger.error("Research failed for idea %s: %s", idea_id, e)
            await safe_emit(events, "research:error", job_id, {"error": str(e)})
            raise

        logger.info(
            "Research complete for idea %s: pack=%s, docs=%d, took=%dms",
            idea_id,
            pack.id,
            len(pack.documents),
            int((time.monotonic() - start) * 1000),
        )
        return pack

    async def _run(self, idea: NormalizedIdea, idea_id: str, job_id: str, events: EventSink) -> ResearchPack:
        queries = generate_queries(idea)
        domains = keyword_domains(idea)
        research_hash = compute_research_hash(idea_id, queries)
        await safe_emit(
            events,
            "research:query:generated",
            job_id,
            {"count": len(queries), "queries": queries, "research_hash": research_hash, "include_domains": domains},
        )

        cached = await self._load_cached(idea_id, research_hash)
        if cached is not None:
            await safe_emit(events, "research:cache:hit", job_id, {"research_pack_id": cached.id})
            await self.store.save_job_status(job_id, {"idea_id": idea_id, "research_pack_id": cached.id})
            await safe_emit(events, "research:complete", job_id, {"research_pack_id": cached.id, "cached": True})
            return cached

        hits = await self._search(queries, job_id, events, include_domains=domains)
        documents = await self._fetch(hits, job_id, events)

        deduped = self.ranker.deduplicate(documents)
        await safe_emit(
            events,
            "research:dedupe",
            job_id,
            {"original_count": len(documents), "final_count": len(deduped)},
        )

        ranked = self.ranker.rank(deduped, queries)
        await safe_emit(events, "research:ranked", job_id, {"top_urls": [d.url for d in ranked[:5]]})

        pack = self._build_pack(idea_id, research_hash, queries, hits, ranked)
        pack = await self.store.save_research_pack(pack)
        await safe_emit(
            events,
            "research:packed",
            job_id,
            {"research_pack_id": pack.id, "total_sources": len(pack.sources), "total_docs": len(pack.documents)},
        )

        await self.cache.set(
            research_cache_key(idea_id, research_hash),
            pack.model_dump(mode="json"),
            ttl=self.cache_ttl,
        )
        await safe_emit(events, "research:cached", job_id, {"ttl": self.cache_ttl})

        await self.store.save_job_status(job_id, {"idea_id": idea_id, "research_pack_id": pack.id})
        await safe_emit(events, "research:complete", job_id, {"research_pack_id": pack.id, "cached": False})
        return pack

    async def _load_cached(self, idea_id: str, research_hash: str) -> ResearchPack | None:
        data = await self.cache.get(research_cache_key(idea_id, research_hash))
        if data is None:
            return None
        try:
            return ResearchPack.model_validate(data)
        except ValueError:
            logger.warning("Discarding unreadable cached research pack for idea %s", idea_id, exc_info=True)
            return None

    # ── Search ───────────────────────────────────────────────────────────

    async def _search(
        self, queries: list[str], job_id: str, events: EventSink, *, include_domains: list[str] | None = None
    ) -> list[SearchResult]:
        hits: list[SearchResult] = []
        options = SearchOptions(include_domains=include_domains) if include_domains else None
        use_secondary = self.secondary is not None and self.secondary.is_enabled()

        for query in queries:
            primary_hits = await self.primary.search(query, options)
            hits.extend(primary_hits)
            await safe_emit(
                events,
                "research:search:primary",
                job_id,
                {"provider": self.primary.name, "query": query, "count": len(primary_hits)},
            )

            if use_secondary:
                assert self.secondary is not None
                secondary_hits = await self.secondary.search(query, options)
                hits.extend(secondary_hits)
                await safe_emit(
                    events,
                    "research:search:secondary",
                    job_id,
                    {"provider": self.secondary.name, "query": query, "count": len(secondary_hits)},
                )
        return hits

    # ── Fetch ────────────────────────────────────────────────────────────

    async def _fetch(self, hits: list[SearchResult], job_id: str, events: EventSink) -> list[Document]:
        by_url: dict[str, SearchResult] = {}
        for hit in hits:
            by_url.setdefault(canonicalize_url(hit.url), hit)
        targets = list(by_url.values())[: self.settings.max_documents]

        results = await asyncio.gather(
            *(self.fetcher.fetch_and_extract(hit.url) for hit in targets),
            return_exceptions=True,
        )

        documents: list[Document] = []
        for hit, result in zip(targets, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Unexpected fetch failure for %s: %s", hit.url, result)
                await safe_emit(events, "research:doc:skipped", job_id, {"url": hit.url, "reason": "error"})
                continue

            if not result.usable:
                reason = "blocked" if result.metadata.blocked else "error" if result.metadata.error else "empty"
                await safe_emit(
                    events,
                    "research:doc:skipped",
                    job_id,
                    {"url": hit.url, "reason": reason, "message": result.metadata.error_message},
                )
                continue

            documents.append(self._with_search_metadata(result, hit))
            await safe_emit(
                events,
                "research:doc:fetched",
                job_id,
                {"url": result.url, "title": result.title, "chars": len(result.content)},
            )
        return documents

    @staticmethod
    def _with_search_metadata(doc: Document, hit: SearchResult) -> Document:
        updates: dict[str, Any] = {}
        if doc.metadata.published_date is None and hit.metadata.published_date is not None:
            updates["metadata"] = doc.metadata.model_copy(update={"published_date": hit.metadata.published_date})
        if not doc.title and hit.title:
            updates["title"] = hit.title
        return doc.model_copy(update=updates) if updates else doc

    # ── Pack ─────────────────────────────────────────────────────────────

    def _build_pack(
        self,
        idea_id: str,
        research_hash: str,
        queries: list[str],
        hits: list[SearchResult],
        ranked: list[RankedDocument],
    ) -> ResearchPack:
        sources: list[SourceRef] = []
        seen: set[str] = set()
        for hit in hits:
            canonical = canonicalize_url(hit.url)
            if canonical in seen:
                continue
            seen.add(canonical)
            sources.append(
                SourceRef(url=hit.url, title=hit.title, domain=hit.metadata.domain, fetched_at=hit.metadata.fetched_at)
            )

        limit = self.settings.pack_document_chars
        documents = [
            doc.model_copy(update={"content": doc.content[:limit]}) if len(doc.content) > limit else doc
            for doc in ranked
        ]

        return ResearchPack(
            idea_id=idea_id,
            research_hash=research_hash,
            queries=queries,
            sources=sources,
            documents=documents,
            ttl=datetime.now(UTC) + timedelta(seconds=self.cache_ttl),
        )
