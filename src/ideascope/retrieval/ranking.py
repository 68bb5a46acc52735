"""Dedupe/Ranker — canonical-URL and content-hash deduplication, heuristic ranking.

Scoring is a plain sum of three components:

- **recency**: age of ``published_date`` (or ``fetched_at``) in days
  (<30 → 10, <90 → 7, <180 → 5, <365 → 3, older → 1, no date → 0)
- **authority**: domain trust tier (high → 10, ``.gov``/``.edu`` → 8, mid → 5, other → 3)
- **overlap**: +5 for each distinct query found case-insensitively in the content
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ideascope.models.document import Document, RankedDocument

logger = logging.getLogger(__name__)

HIGH_TRUST_DOMAINS = frozenset(
    {"wikipedia.org", "reuters.com", "bloomberg.com", "forbes.com", "wsj.com", "nytimes.com"}
)
MID_TRUST_DOMAINS = frozenset({"techcrunch.com", "venturebeat.com", "medium.com", "github.com"})

TRACKING_PARAMS = frozenset({"gclid", "fbclid", "mc_cid", "mc_eid", "ref"})

QUERY_MATCH_POINTS = 5


def canonicalize_url(url: str) -> str:
    """Return the canonical form of *url* used as its identity.

    Lower-cases the scheme and host, strips ``www.``, drops the fragment,
    a trailing slash, and ``utm_*``/tracker query parameters, and sorts the
    remaining parameters. Unparseable URLs are returned unchanged.
    """
    try:
        parts = urlsplit(url.strip())
        host = (parts.hostname or "").lower()
        port = parts.port
    except ValueError:
        return url
    if not parts.scheme or not host:
        return url

    if host.startswith("www."):
        host = host[4:]
    netloc = f"{host}:{port}" if port else host

    path = parts.path
    if path.endswith("/"):
        path = path.rstrip("/")

    params = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if not key.lower().startswith("utm_") and key.lower() not in TRACKING_PARAMS
    ]
    query = urlencode(sorted(params))

    return urlunsplit((parts.scheme.lower(), netloc, path, query, ""))


def _domain_matches(domain: str, trusted: frozenset[str]) -> bool:
    return any(domain == entry or domain.endswith("." + entry) for entry in trusted)


class DedupeRanker:
    """Remove duplicate documents and order the rest by heuristic quality.

    Args:
        now: Fixed reference time for recency scoring (defaults to the current time).
    """

    def __init__(self, now: datetime | None = None) -> None:
        self._now = now

    def deduplicate(self, docs: Sequence[Document]) -> list[Document]:
        """Drop documents whose canonical URL or content hash was already seen.

        The first occurrence wins and input order is preserved.
        """
        seen_urls: set[str] = set()
        seen_hashes: set[str] = set()
        unique: list[Document] = []
        for doc in docs:
            canonical = canonicalize_url(doc.url)
            if canonical in seen_urls:
                continue
            if doc.content_hash and doc.content_hash in seen_hashes:
                continue
            seen_urls.add(canonical)
            if doc.content_hash:
                seen_hashes.add(doc.content_hash)
            unique.append(doc)

        dropped = len(docs) - len(unique)
        if dropped:
            logger.debug("Deduplication dropped %d document(s)", dropped)
        return unique

    def rank(self, docs: Iterable[Document], queries: Sequence[str]) -> list[RankedDocument]:
        """Score *docs* and return them best first (stable for equal scores)."""
        ranked = [
            RankedDocument.model_validate({**doc.model_dump(), "rank_score": self.score(doc, queries)})
            for doc in docs
        ]
        ranked.sort(key=lambda d: d.rank_score, reverse=True)
        return ranked

    def score(self, doc: Document, queries: Sequence[str]) -> float:
        return float(
            self.recency_score(doc.metadata.published_date or doc.metadata.fetched_at)
            + self.authority_score(doc.metadata.domain)
            + self.overlap_score(doc.content, queries)
        )

    def recency_score(self, when: datetime | None) -> int:
        if when is None:
            return 0
        if when.tzinfo is None:
            when = when.replace(tzinfo=UTC)
        now = self._now or datetime.now(UTC)
        age_days = (now - when).total_seconds() / 86400
        if age_days < 30:
            return 10
        if age_days < 90:
            return 7
        if age_days < 180:
            return 5
        if age_days < 365:
            return 3
        return 1

    @staticmethod
    def authority_score(domain: str) -> int:
        domain = domain.lower()
        if _domain_matches(domain, HIGH_TRUST_DOMAINS):
            return 10
        if domain.endswith(".gov") or domain.endswith(".edu"):
            return 8
        if _domain_matches(domain, MID_TRUST_DOMAINS):
            return 5
        return 3

    @staticmethod
    def overlap_score(content: str, queries: Sequence[str]) -> int:
        haystack = content.lower()
        distinct = {q.strip().lower() for q in queries if q.strip()}
        return QUERY_MATCH_POINTS * sum(1 for q in distinct if q in haystack)
