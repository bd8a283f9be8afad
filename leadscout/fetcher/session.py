"""HTTP page fetcher: bounded concurrency, per-request timeout, per-run cache."""

import asyncio
import logging
from datetime import datetime
from types import TracebackType

import httpx

from leadscout.core.config import FetcherConfig
from leadscout.fetcher import extract
from leadscout.fetcher.base import PageInspector

logger = logging.getLogger(__name__)


class PageFetcher(PageInspector):
    """Async context manager that owns one ``httpx.AsyncClient``.

    At most ``max_concurrency`` requests are in flight. Each page is
    downloaded once per session; failures are cached as None too.

    Usage::

        async with PageFetcher(settings.fetcher) as fetcher:
            email = await fetcher.extract_email(url)
    """

    def __init__(
        self,
        config: FetcherConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._semaphore = asyncio.Semaphore(config.max_concurrency)
        self._cache: dict[str, str | None] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def __aenter__(self) -> "PageFetcher":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_s),
            headers={"User-Agent": self._config.user_agent},
            follow_redirects=True,
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
        self._cache.clear()
        self._locks.clear()

    async def get_html(self, url: str) -> str | None:
        """Return the page HTML, or None on any fetch failure."""
        lock = self._locks.setdefault(url, asyncio.Lock())
        async with lock:
            if url not in self._cache:
                self._cache[url] = await self._download(url)
            return self._cache[url]

    async def _download(self, url: str) -> str | None:
        if self._client is None:
            msg = "PageFetcher not entered - use 'async with'"
            raise RuntimeError(msg)
        async with self._semaphore:
            try:
                response = await asyncio.wait_for(
                    self._client.get(url), timeout=self._config.timeout_s,
                )
                response.raise_for_status()
                return response.text
            except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
                logger.warning("Fetch failed for %s: %s", url, str(e) or type(e).__name__)
                return None

    async def has_enough_images(self, url: str, minimum: int) -> bool:
        html = await self.get_html(url)
        if html is None:
            return False
        found = extract.count_images(html)
        logger.debug("%s: %d images (min %d)", url, found, minimum)
        return found >= minimum

    async def extract_email(self, url: str) -> str | None:
        html = await self.get_html(url)
        return extract.first_email(html) if html is not None else None

    async def extract_last_modified(self, url: str) -> datetime | None:
        html = await self.get_html(url)
        return extract.last_modified(html) if html is not None else None

    async def count_words(self, url: str) -> int | None:
        html = await self.get_html(url)
        return extract.word_count(html) if html is not None else None
