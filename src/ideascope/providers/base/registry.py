"""Provider Registry — registration and lifecycle of search providers.

Provider classes are registered by name; instances are created and
initialized from configuration when the pipeline starts.
"""

from __future__ import annotations

import logging
from typing import Any

from ideascope.providers.base.exceptions import ProviderNotFoundError
from ideascope.providers.base.provider import SearchProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry for search provider classes and their live instances.

    Example:
        >>> registry = ProviderRegistry()
        >>> registry.register("perplexity", PerplexityProvider)
        >>> await registry.initialize_provider("perplexity", config=provider_config)
        >>> provider = registry.get("perplexity")
    """

    def __init__(self) -> None:
        self._classes: dict[str, type[SearchProvider]] = {}
        self._instances: dict[str, SearchProvider] = {}

    def register(self, name: str, provider_class: type[SearchProvider]) -> None:
        """Register a provider class under *name*."""
        if name in self._classes:
            logger.warning("Overwriting existing provider registration: %s", name)
        self._classes[name] = provider_class
        logger.debug("Registered provider: %s", name)

    async def initialize_provider(self, name: str, **kwargs: Any) -> SearchProvider:
        """Create and initialize a provider instance.

        Args:
            name: The registered provider name.
            **kwargs: Passed to the provider constructor.

        Returns:
            The initialized provider.

        Raises:
            ProviderNotFoundError: If no provider is registered under this name.
            ConfigurationError: If the provider rejects its configuration.
        """
        if name not in self._classes:
            raise ProviderNotFoundError(
                f"No provider registered with name '{name}'. Available providers: {list(self._classes.keys())}"
            )

        provider = self._classes[name](**kwargs)
        await provider.initialize()
        self._instances[name] = provider
        logger.info("Initialized search provider: %s (enabled=%s)", name, provider.is_enabled())
        return provider

    def get(self, name: str) -> SearchProvider:
        """Return the initialized provider registered under *name*.

        Raises:
            ProviderNotFoundError: If the provider is not initialized.
        """
        if name not in self._instances:
            raise ProviderNotFoundError(f"Provider '{name}' is not initialized. Call initialize_provider() first.")
        return self._instances[name]

    async def shutdown_all(self) -> None:
        """Shut down every initialized provider."""
        for name, provider in self._instances.items():
            try:
                await provider.shutdown()
                logger.info("Shut down provider: %s", name)
            except Exception:
                logger.warning("Error shutting down provider: %s", name, exc_info=True)
        self._instances.clear()

    @property
    def registered_providers(self) -> list[str]:
        return list(self._classes.keys())

    @property
    def active_providers(self) -> list[str]:
        return list(self._instances.keys())
