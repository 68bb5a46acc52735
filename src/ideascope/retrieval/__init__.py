"""Retrieval — fetching, extraction, rate limiting, deduplication and ranking."""

from ideascope.retrieval.fetcher import ContentFetcher
from ideascope.retrieval.limiter import AsyncRateLimiter
from ideascope.retrieval.ranking import DedupeRanker, canonicalize_url

__all__ = ["AsyncRateLimiter", "ContentFetcher", "DedupeRanker", "canonicalize_url"]
