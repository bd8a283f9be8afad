"""Candidate pipeline: paginated search plus the filter stage chain for one keyword.

Data flow:
  1. Quota gate before every page request
  2. Provider search per page offset (a failed page is lost, not fatal)
  3. Cross-page URL dedup
  4. Filter stages (reason codes accumulate on each candidate)
"""

import logging

from leadscout.core.config import SearchConfig
from leadscout.core.schemas import Candidate, SearchQuery
from leadscout.fetcher.base import PageInspector
from leadscout.pipeline.matcher import (
    DomainDeduplicationFilter,
    EmailFilter,
    ExcludeGovEduFilter,
    ImageFilter,
    NegativeKeywordsFilter,
    Stage,
    UrlDeduplicationFilter,
    WordCountFilter,
    run_stage_chain,
)
from leadscout.pipeline.quota_manager import QuotaManager
from leadscout.platforms.base import SearchProvider, SearchProviderError
from leadscout.platforms.serpapi.searcher import page_offsets, should_stop_pagination

logger = logging.getLogger(__name__)


class PipelineResult:
    """Outcome of one keyword's pass through the pipeline."""

    def __init__(
        self,
        keyword: str,
        raw_count: int,
        candidates: list[Candidate],
        quota_exhausted: bool = False,
    ) -> None:
        self.keyword = keyword
        self.raw_count = raw_count
        self.candidates = candidates
        self.quota_exhausted = quota_exhausted

    @property
    def accepted(self) -> list[Candidate]:
        return [c for c in self.candidates if c.accepted]

    def rejection_counts(self) -> dict[str, int]:
        """Count candidates per rejection reason (a candidate may count twice)."""
        counts: dict[str, int] = {}
        for c in self.candidates:
            for reason in c.reasons:
                counts[reason.value] = counts.get(reason.value, 0) + 1
        return counts


class CandidatePipeline:
    """Retrieves search results for a keyword and evaluates them.

    Usage::

        pipeline = CandidatePipeline(provider, fetcher, quota_manager=qm)
        result = await pipeline.run("coffee shops", config, known_domains)
        result.accepted  # candidates with no reason codes
    """

    def __init__(
        self,
        provider: SearchProvider,
        inspector: PageInspector,
        *,
        page_size: int = 10,
        quota_manager: QuotaManager | None = None,
    ) -> None:
        self._provider = provider
        self._inspector = inspector
        self._page_size = page_size
        self._quota = quota_manager

    async def run(
        self,
        keyword: str,
        config: SearchConfig,
        known_domains: set[str],
    ) -> PipelineResult:
        """Search and filter one keyword.

        ``known_domains`` is updated in place with every accepted domain.
        """
        candidates, raw_count, exhausted = await self._collect(keyword, config)
        logger.info("'%s': %d raw results, %d unique", keyword, raw_count, len(candidates))

        evaluated = await run_stage_chain(candidates, self._build_stages(config, known_domains))
        result = PipelineResult(keyword, raw_count, evaluated, quota_exhausted=exhausted)
        logger.info(
            "'%s': %d accepted, rejections %s",
            keyword, len(result.accepted), result.rejection_counts(),
        )
        return result

    async def _collect(
        self, keyword: str, config: SearchConfig,
    ) -> tuple[list[Candidate], int, bool]:
        """Fetch every requested page. Returns (unique candidates, raw count, quota hit)."""
        dedup = UrlDeduplicationFilter()
        collected: list[Candidate] = []
        raw_count = 0
        provider_id = self._provider.provider_id

        for offset in page_offsets(self._page_size, config.pages):
            if self._quota is not None and not self._quota.can_search(provider_id):
                logger.info("Quota exhausted for '%s' - stopping '%s'", provider_id, keyword)
                return collected, raw_count, True

            query = SearchQuery(
                keyword=keyword,
                language=config.language,
                region=config.region,
                num=self._page_size,
                offset=offset,
            )
            try:
                hits = await self._provider.search(query)
            except SearchProviderError as e:
                logger.warning("Search page at offset %d for '%s' failed: %s", offset, keyword, e)
                continue
            finally:
                if self._quota is not None:
                    self._quota.record_search(provider_id)

            raw_count += len(hits)
            page = [
                Candidate.from_hit(hit, keyword, position=offset + i + 1)
                for i, hit in enumerate(hits)
            ]
            collected.extend(dedup(page))

            if should_stop_pagination(len(hits), self._page_size):
                logger.debug("'%s': short page at offset %d - last page", keyword, offset)
                break

        return collected, raw_count, False

    def _build_stages(self, config: SearchConfig, known_domains: set[str]) -> list[Stage]:
        """Build the stage chain for a search config (cheap checks first)."""
        return [
            ExcludeGovEduFilter(config.exclude_gov_edu),
            NegativeKeywordsFilter(config.negative_keywords),
            ImageFilter(self._inspector, config.require_images),
            EmailFilter(self._inspector, config.require_email),
            DomainDeduplicationFilter(known_domains, config.avoid_duplicates),
            WordCountFilter(self._inspector, config.min_words),
        ]
