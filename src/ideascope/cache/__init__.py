"""Caching layer for ResearchPacks and validated node outputs."""

from ideascope.cache.manager import CacheManager, node_cache_key, research_cache_key

__all__ = ["CacheManager", "node_cache_key", "research_cache_key"]
