"""Abstract page inspector used by the expensive pipeline stages."""

from abc import ABC, abstractmethod
from datetime import datetime


class PageInspector(ABC):
    """Page-level checks. Network failures never raise: they yield False/None."""

    @abstractmethod
    async def has_enough_images(self, url: str, minimum: int) -> bool:
        """Return True if the page embeds at least ``minimum`` images."""

    @abstractmethod
    async def extract_email(self, url: str) -> str | None:
        """Return the first email-shaped token in the page HTML."""

    @abstractmethod
    async def extract_last_modified(self, url: str) -> datetime | None:
        """Return the page's last-modified instant (timezone-aware)."""

    @abstractmethod
    async def count_words(self, url: str) -> int | None:
        """Return the number of whitespace-delimited tokens in the body text."""
