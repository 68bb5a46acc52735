"""Base search provider — abstract interface for web search backends.

Every search backend must implement this interface to feed the research
orchestrator. A provider is responsible for:
  1. Executing a query against the backend
  2. Normalizing raw hits into ``SearchResult``
  3. Reporting whether it is usable with its current configuration
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ideascope.models.document import SearchResult
from ideascope.models.query import SearchOptions


class SearchProvider(ABC):
    """Abstract base class for search providers.

    All providers must implement:
      - search(): Execute a query and return normalized results
      - normalize_result(): Map one raw hit to a SearchResult
      - is_enabled(): Whether the provider should be called at all

    Normalization must always fill ``metadata.domain`` and ``metadata.source``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider name (e.g., 'perplexity', 'tavily')."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider (clients, credentials).

        Called once during pipeline startup.
        """

    @abstractmethod
    async def shutdown(self) -> None:
        """Release clients and connections."""

    @abstractmethod
    async def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """Execute *query* and return normalized results.

        Args:
            query: The search query string.
            options: Optional per-call overrides.

        Returns:
            Normalized search results, best first.
        """

    @abstractmethod
    def normalize_result(self, raw: Any, index: int = 0) -> SearchResult:
        """Map a raw backend hit to a SearchResult.

        Args:
            raw: A single raw hit from the backend.
            index: Position of the hit in the backend's response.
        """

    def is_enabled(self) -> bool:
        """Whether this provider is configured and should be called."""
        return True
