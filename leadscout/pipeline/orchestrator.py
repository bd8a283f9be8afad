"""Orchestrator: wires keywords, candidate pipeline, lead sink, quota, and run records.

Data flow per search configuration:
  1. Resolve keywords (long-tail variants replace core keywords when generated)
  2. Load persisted lead domains once (shared known-domain set for the run)
  3. Per keyword: candidate pipeline → lead sink → quota → search_runs row
"""

import json
import logging
import sqlite3
from collections.abc import Awaitable, Callable

from leadscout.core.config import SearchConfig, SearchProviderConfig, Settings
from leadscout.core.db import insert_search_run, list_lead_domains
from leadscout.core.schemas import KeywordRunResult, RunSummary, Schedule, utc_now
from leadscout.fetcher.base import PageInspector
from leadscout.fetcher.session import PageFetcher
from leadscout.keywords.longtail import resolve_keywords
from leadscout.pipeline.candidates import CandidatePipeline
from leadscout.pipeline.quota_manager import QuotaManager
from leadscout.pipeline.sink import LeadSink
from leadscout.platforms.base import SearchProvider
from leadscout.platforms.serpapi.adapter import SerpApiProvider

logger = logging.getLogger(__name__)

ScheduleRunner = Callable[[Schedule], Awaitable[RunSummary]]


async def run_search_config(
    config: SearchConfig,
    provider: SearchProvider,
    inspector: PageInspector,
    conn: sqlite3.Connection,
    settings: Settings,
    schedule_id: str | None = None,
) -> RunSummary:
    """Run every keyword of a search configuration through pipeline and sink.

    Returns a RunSummary with one KeywordRunResult per keyword that executed.
    Keywords after a quota exhaustion are skipped.
    """
    summary = RunSummary()
    summary.keywords = await resolve_keywords(config, settings.llm)
    if not summary.keywords:
        logger.warning("No keywords configured - nothing to search")
        summary.finished_at = utc_now()
        return summary

    provider_id = provider.provider_id
    quota_manager = QuotaManager(conn, settings.quotas)
    pipeline = CandidatePipeline(
        provider,
        inspector,
        page_size=settings.search_provider.results_per_page,
        quota_manager=quota_manager,
    )
    sink = LeadSink(conn, inspector, settings.scoring)
    known_domains = list_lead_domains(conn)
    config_json = config.model_dump_json()

    for keyword in summary.keywords:
        if not quota_manager.can_search(provider_id):
            logger.info("Quota exhausted for '%s' - skipping '%s'", provider_id, keyword)
            break

        started_at = utc_now()
        # Only domains that ended up saved carry over to later keywords.
        result = await pipeline.run(keyword, config, set(known_domains))
        accepted = result.accepted

        remaining = quota_manager.remaining_leads(provider_id)
        if len(accepted) > remaining:
            logger.info(
                "Lead quota for '%s' allows %d of %d accepted candidates",
                provider_id, remaining, len(accepted),
            )
            accepted = accepted[:remaining]

        leads = await sink.persist(accepted, keyword)
        quota_manager.record_leads(provider_id, len(leads))
        known_domains.update(lead.domain.lower() for lead in leads if lead.domain)

        insert_search_run(
            conn,
            provider=provider_id,
            keyword=keyword,
            config_json=config_json,
            raw_count=result.raw_count,
            accepted_count=len(result.accepted),
            saved_count=len(leads),
            started_at=started_at,
            finished_at=utc_now(),
            schedule_id=schedule_id,
        )

        summary.results.append(KeywordRunResult(
            keyword=keyword,
            raw_count=result.raw_count,
            accepted_count=len(result.accepted),
            saved_count=len(leads),
            rejections=result.rejection_counts(),
            leads=leads,
        ))

        if result.quota_exhausted:
            logger.info("Quota exhausted during '%s' - stopping run", keyword)
            break

    summary.finished_at = utc_now()
    logger.info(
        "Run finished: %d keywords searched, %d leads saved",
        len(summary.results), summary.total_saved,
    )
    return summary


def open_search_provider(config: SearchProviderConfig) -> SerpApiProvider:
    """Create the configured search provider (enter it with ``async with``)."""
    if config.provider != "serpapi":
        msg = f"Unknown search provider '{config.provider}'. Available: serpapi"
        raise ValueError(msg)
    return SerpApiProvider(config)


def make_schedule_runner(settings: Settings, conn: sqlite3.Connection) -> ScheduleRunner:
    """Build the in-process runner the execution guard calls on every fire."""

    async def run_schedule(schedule: Schedule) -> RunSummary:
        async with (
            open_search_provider(settings.search_provider) as provider,
            PageFetcher(settings.fetcher) as fetcher,
        ):
            return await run_search_config(
                schedule.search, provider, fetcher, conn, settings, schedule_id=schedule.id,
            )

    return run_schedule


def export_results_json(summary: RunSummary) -> str:
    """Export the leads saved by a run as a JSON string."""
    data = []
    for r in summary.results:
        for lead in r.leads:
            data.append({
                "keyword": r.keyword,
                "id": lead.id,
                "title": lead.title,
                "url": lead.url,
                "domain": lead.domain,
                "snippet": lead.snippet,
                "score": lead.score,
                "rank": lead.rank,
                "contact_email": lead.contact_email,
                "activity": lead.activity.value,
                "last_modified_at": (
                    lead.last_modified_at.isoformat() if lead.last_modified_at else None
                ),
                "status": lead.status.value,
            })
    return json.dumps(data, indent=2, ensure_ascii=False)
