"""Perplexity primary search provider."""

from ideascope.providers.perplexity.provider import PerplexityProvider

__all__ = ["PerplexityProvider"]
