"""SerpAPI search provider - wires request builder, parser, and HTTP client."""

import logging
import os
from types import TracebackType

import httpx

from leadscout.core.config import SearchProviderConfig
from leadscout.core.schemas import SearchHit, SearchQuery
from leadscout.platforms.base import SearchProvider, SearchProviderError
from leadscout.platforms.serpapi.parser import parse_organic_results
from leadscout.platforms.serpapi.searcher import SERPAPI_ENDPOINT, build_params

logger = logging.getLogger(__name__)


class SerpApiProvider(SearchProvider):
    """Google organic results via SerpAPI.

    Async context manager owning one ``httpx.AsyncClient``::

        async with SerpApiProvider(settings.search_provider) as provider:
            hits = await provider.search(query)
    """

    def __init__(
        self,
        config: SearchProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._api_key = ""

    @property
    def provider_id(self) -> str:
        return "serpapi"

    async def __aenter__(self) -> "SerpApiProvider":
        api_key = os.environ.get(self._config.api_key_env)
        if not api_key:
            msg = f"{self._config.api_key_env} environment variable is required"
            raise ValueError(msg)
        self._api_key = api_key
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_s),
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def search(self, query: SearchQuery) -> list[SearchHit]:
        if self._client is None:
            msg = "SerpApiProvider not entered - use 'async with'"
            raise RuntimeError(msg)

        params = build_params(query, self._api_key)
        logger.info("Searching '%s' (offset %d)", query.keyword, query.offset)
        try:
            response = await self._client.get(SERPAPI_ENDPOINT, params=params)
            response.raise_for_status()
            return parse_organic_results(response.json())
        except httpx.HTTPError as e:
            msg = f"SerpAPI request failed for '{query.keyword}': {e}"
            raise SearchProviderError(msg) from e
        except ValueError as e:
            msg = f"Malformed SerpAPI response for '{query.keyword}': {e}"
            raise SearchProviderError(msg) from e
