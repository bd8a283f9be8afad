"""Quota manager: daily gate enforcement for search requests and saved leads.

Quota state lives in SQLite and is checked before every page request.
Counters are keyed by date, so they reset on their own when the day changes.
"""

import logging
import sqlite3

from leadscout.core.config import QuotaPlatformConfig
from leadscout.core.db import get_quota, update_quota

logger = logging.getLogger(__name__)


class QuotaManager:
    """Enforces daily search and lead limits per search provider.

    Usage::

        qm = QuotaManager(conn, {"serpapi": QuotaPlatformConfig(...)})
        if qm.can_search("serpapi"):
            ...  # request one result page
            qm.record_search("serpapi")
            qm.record_leads("serpapi", count=4)
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        quotas: dict[str, QuotaPlatformConfig],
    ) -> None:
        self._conn = conn
        self._quotas = quotas

    def can_search(self, provider: str) -> bool:
        """Return True if the provider has not exceeded its daily request limit."""
        config = self._quotas.get(provider)
        if config is None:
            logger.debug("No quota config for '%s' - allowing search", provider)
            return True
        searches_run, _ = get_quota(self._conn, provider)
        allowed = searches_run < config.max_searches_per_day
        if not allowed:
            logger.info(
                "Quota reached for '%s': %d/%d searches today",
                provider, searches_run, config.max_searches_per_day,
            )
        return allowed

    def remaining_leads(self, provider: str) -> int:
        """Return how many more leads can be saved today for this provider."""
        config = self._quotas.get(provider)
        if config is None:
            return 999_999  # No limit configured
        _, leads_found = get_quota(self._conn, provider)
        return max(0, config.max_leads_per_day - leads_found)

    def record_search(self, provider: str) -> None:
        """Increment the request counter for today."""
        update_quota(self._conn, provider, searches_delta=1)
        logger.debug("Recorded search for '%s'", provider)

    def record_leads(self, provider: str, count: int) -> None:
        """Increment the saved-lead counter for today."""
        update_quota(self._conn, provider, leads_delta=count)
        logger.debug("Recorded %d leads for '%s'", count, provider)
