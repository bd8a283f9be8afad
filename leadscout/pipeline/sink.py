"""Lead sink: turns accepted candidates into persisted leads.

A URL that already exists is skipped, not treated as an error.
"""

import asyncio
import logging
import sqlite3
import uuid
from collections.abc import Callable
from datetime import datetime

from leadscout.core.config import ScoringConfig
from leadscout.core.db import create_lead
from leadscout.core.schemas import ActivityStatus, Candidate, Lead, utc_now
from leadscout.fetcher.base import PageInspector
from leadscout.pipeline.scorer import rank_label, score_candidate

logger = logging.getLogger(__name__)

ACTIVE_DAYS = 30
NORMAL_DAYS = 180


def classify_activity(last_modified: datetime | None, now: datetime) -> ActivityStatus:
    """Bucket a page by the age of its last-modified instant."""
    if last_modified is None:
        return ActivityStatus.UNKNOWN
    age_days = (now - last_modified).total_seconds() / 86400
    if age_days <= ACTIVE_DAYS:
        return ActivityStatus.ACTIVE
    if age_days <= NORMAL_DAYS:
        return ActivityStatus.NORMAL
    return ActivityStatus.OLD


class LeadSink:
    """Persists accepted candidates as ``pending_review`` leads."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        inspector: PageInspector,
        scoring: ScoringConfig,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._conn = conn
        self._inspector = inspector
        self._scoring = scoring
        self._clock = clock

    async def persist(self, accepted: list[Candidate], keyword: str) -> list[Lead]:
        """Create one lead per candidate. Returns only the leads actually inserted."""
        if not accepted:
            return []
        dates = await asyncio.gather(
            *(self._inspector.extract_last_modified(c.url) for c in accepted)
        )
        now = self._clock()

        created: list[Lead] = []
        for candidate, last_modified in zip(accepted, dates):
            lead = self._build_lead(candidate, keyword, last_modified, now)
            if create_lead(self._conn, lead):
                created.append(lead)
            else:
                logger.debug("Lead for %s already exists - skipped", candidate.url)

        logger.info("'%s': saved %d of %d accepted leads", keyword, len(created), len(accepted))
        return created

    def _build_lead(
        self,
        candidate: Candidate,
        keyword: str,
        last_modified: datetime | None,
        now: datetime,
    ) -> Lead:
        activity = classify_activity(last_modified, now)
        return Lead(
            id=uuid.uuid4().hex,
            title=candidate.title,
            url=candidate.url,
            domain=candidate.domain,
            snippet=candidate.snippet,
            keywords=[keyword],
            score=score_candidate(candidate, activity, self._scoring),
            rank=rank_label(candidate.position),
            contact_email=candidate.contact_email,
            last_modified_at=last_modified,
            activity=activity,
            created_at=now,
        )
