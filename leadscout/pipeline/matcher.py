"""Filter stages for candidate evaluation.

Stages never drop a candidate: they return new (frozen) candidates with a
rejection reason appended, so every rejection can be reported.

Stage order:
  1. ExcludeGovEduFilter       - cheap, host substring
  2. NegativeKeywordsFilter    - cheap, title OR snippet
  3. ImageFilter               - fetch, fails open when it would reject everyone
  4. EmailFilter               - fetch, stores the contact address
  5. DomainDeduplicationFilter - persisted leads + this run's accepted domains
  6. WordCountFilter           - fetch, most expensive, last

Fetching stages only inspect candidates that are still accepted.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from leadscout.core.schemas import Candidate, RejectionReason
from leadscout.fetcher.base import PageInspector

logger = logging.getLogger(__name__)

MIN_IMAGES = 3

# A stage takes candidates and returns them with reasons attached.
Stage = Callable[[list[Candidate]], list[Candidate] | Awaitable[list[Candidate]]]


def _log_rejections(stage: str, before: list[Candidate], after: list[Candidate]) -> None:
    newly = sum(1 for b, a in zip(before, after) if len(a.reasons) > len(b.reasons))
    if newly:
        logger.debug("%s: rejected %d candidates", stage, newly)


class ExcludeGovEduFilter:
    """Reject government and academic hosts (``.gov``/``.edu`` anywhere in the host)."""

    def __init__(self, enabled: bool) -> None:
        self._enabled = enabled

    def __call__(self, candidates: list[Candidate]) -> list[Candidate]:
        if not self._enabled:
            return candidates
        result = [
            c.reject(RejectionReason.EXCLUDE_GOV_EDU) if self._excluded(c.domain) else c
            for c in candidates
        ]
        _log_rejections("ExcludeGovEduFilter", candidates, result)
        return result

    @staticmethod
    def _excluded(domain: str) -> bool:
        host = domain.lower()
        return ".gov" in host or ".edu" in host


class NegativeKeywordsFilter:
    """Reject candidates whose title or snippet contains a negative keyword (case-insensitive)."""

    def __init__(self, negative_keywords: list[str]) -> None:
        self._keywords = [kw.lower().strip() for kw in negative_keywords if kw.strip()]

    def __call__(self, candidates: list[Candidate]) -> list[Candidate]:
        if not self._keywords:
            return candidates
        result = [
            c.reject(RejectionReason.NEGATIVE_KEYWORD) if self._matches(c) else c
            for c in candidates
        ]
        _log_rejections("NegativeKeywordsFilter", candidates, result)
        return result

    def _matches(self, candidate: Candidate) -> bool:
        title = candidate.title.lower()
        snippet = candidate.snippet.lower()
        return any(kw in title or kw in snippet for kw in self._keywords)


class UrlDeduplicationFilter:
    """Drop results whose URL was already seen within one keyword's pages.

    Stateful: tracks seen URLs across calls within the same instance.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __call__(self, candidates: list[Candidate]) -> list[Candidate]:
        result: list[Candidate] = []
        for c in candidates:
            if c.url not in self._seen:
                self._seen.add(c.url)
                result.append(c)
        deduped = len(candidates) - len(result)
        if deduped:
            logger.debug("UrlDeduplicationFilter: removed %d duplicates", deduped)
        return result


class ImageFilter:
    """Reject pages with fewer than ``minimum`` images.

    If every inspected candidate fails, the rejection is waived for all of
    them so an overly strict filter cannot wipe out a whole batch.
    """

    def __init__(self, inspector: PageInspector, enabled: bool, minimum: int = MIN_IMAGES) -> None:
        self._inspector = inspector
        self._enabled = enabled
        self._minimum = minimum

    async def __call__(self, candidates: list[Candidate]) -> list[Candidate]:
        if not self._enabled:
            return candidates
        targets = [i for i, c in enumerate(candidates) if c.accepted]
        if not targets:
            return candidates

        checks = await asyncio.gather(
            *(self._inspector.has_enough_images(candidates[i].url, self._minimum) for i in targets)
        )
        if not any(checks):
            logger.info(
                "ImageFilter: all %d candidates for '%s' lack images - waiving image rule",
                len(targets), candidates[targets[0]].keyword,
            )
            return candidates

        result = list(candidates)
        for i, ok in zip(targets, checks):
            if not ok:
                result[i] = result[i].reject(RejectionReason.INSUFFICIENT_IMAGES)
        _log_rejections("ImageFilter", candidates, result)
        return result


class EmailFilter:
    """Require a contact address in the page HTML and record it on the candidate."""

    def __init__(self, inspector: PageInspector, enabled: bool) -> None:
        self._inspector = inspector
        self._enabled = enabled

    async def __call__(self, candidates: list[Candidate]) -> list[Candidate]:
        if not self._enabled:
            return candidates
        targets = [i for i, c in enumerate(candidates) if c.accepted]
        emails = await asyncio.gather(
            *(self._inspector.extract_email(candidates[i].url) for i in targets)
        )
        result = list(candidates)
        for i, email in zip(targets, emails):
            if email:
                result[i] = result[i].model_copy(update={"contact_email": email})
            else:
                result[i] = result[i].reject(RejectionReason.NO_EMAIL)
        _log_rejections("EmailFilter", candidates, result)
        return result


class DomainDeduplicationFilter:
    """Reject domains already known (persisted leads or accepted earlier in this run).

    ``known_domains`` is mutated in place: an accepted candidate's domain is
    added immediately so later candidates in the same run see it.
    """

    def __init__(self, known_domains: set[str], enabled: bool) -> None:
        self._known = known_domains
        self._enabled = enabled

    def __call__(self, candidates: list[Candidate]) -> list[Candidate]:
        result: list[Candidate] = []
        for c in candidates:
            key = c.domain.lower()
            if self._enabled and key in self._known:
                c = c.reject(RejectionReason.DUPLICATE_DOMAIN)
            elif c.accepted and key:
                self._known.add(key)
            result.append(c)
        _log_rejections("DomainDeduplicationFilter", candidates, result)
        return result


class WordCountFilter:
    """Reject pages whose body text has fewer than ``min_words`` tokens."""

    def __init__(self, inspector: PageInspector, min_words: int) -> None:
        self._inspector = inspector
        self._min_words = min_words

    async def __call__(self, candidates: list[Candidate]) -> list[Candidate]:
        if self._min_words <= 0:
            return candidates
        targets = [i for i, c in enumerate(candidates) if c.accepted]
        counts = await asyncio.gather(
            *(self._inspector.count_words(candidates[i].url) for i in targets)
        )
        result = list(candidates)
        for i, count in zip(targets, counts):
            result[i] = result[i].model_copy(update={"word_count": count})
            if count is None or count < self._min_words:
                result[i] = result[i].reject(RejectionReason.INSUFFICIENT_WORDS)
        _log_rejections("WordCountFilter", candidates, result)
        return result


async def run_stage_chain(candidates: list[Candidate], stages: list[Stage]) -> list[Candidate]:
    """Apply stages in order, awaiting the ones that fetch pages."""
    result = candidates
    for stage in stages:
        out = stage(result)
        result = await out if inspect.isawaitable(out) else out
    return result
