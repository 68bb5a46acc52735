"""Provider-specific exceptions."""

from ideascope.core.errors import IdeaScopeError, TransportError


class ProviderError(IdeaScopeError):
    """Base exception for search provider errors."""


class ConfigurationError(ProviderError):
    """Raised when provider configuration is invalid (e.g. missing API key)."""


class QueryError(ProviderError, TransportError):
    """Raised when a search query fails after all retries."""


class ProviderNotFoundError(ProviderError):
    """Raised when a requested provider is not registered or not initialized."""
