"""Abstract base class for search providers."""

from abc import ABC, abstractmethod

from leadscout.core.schemas import SearchHit, SearchQuery


class SearchProviderError(RuntimeError):
    """A single search request failed (transport, status, or body)."""


class SearchProvider(ABC):
    """Base class that every search provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'serpapi')."""

    @abstractmethod
    async def search(self, query: SearchQuery) -> list[SearchHit]:
        """Fetch one page of organic results.

        Raises:
            SearchProviderError: If this page could not be retrieved.
        """
