"""Tavily secondary search provider."""

from ideascope.providers.tavily.provider import TavilyProvider

__all__ = ["TavilyProvider"]
