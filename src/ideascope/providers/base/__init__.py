"""Base provider interface — Abstract classes for web search backends."""

from ideascope.providers.base.provider import SearchProvider
from ideascope.providers.base.registry import ProviderRegistry

__all__ = ["ProviderRegistry", "SearchProvider"]
