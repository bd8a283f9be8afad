"""CLI entry point for the lead discovery engine."""

import argparse
import asyncio
import logging
import signal
import sqlite3
import sys
from datetime import timedelta
from typing import Any

from leadscout.core.config import Settings
from leadscout.core.db import get_quota, init_db, list_leads
from leadscout.core.schemas import LeadStatus, RunSummary, Schedule
from leadscout.fetcher.session import PageFetcher
from leadscout.keywords.llm import available_providers, get_provider
from leadscout.keywords.longtail import generate_long_tail
from leadscout.pipeline.orchestrator import (
    export_results_json,
    make_schedule_runner,
    open_search_provider,
    run_search_config,
)
from leadscout.pipeline.quota_manager import QuotaManager
from leadscout.scheduler.cron import to_crontab, to_trigger
from leadscout.scheduler.guard import ExecutionGuard
from leadscout.scheduler.registry import TaskRegistry
from leadscout.scheduler.service import ScheduleService


def _common_options() -> argparse.ArgumentParser:
    # SUPPRESS keeps the top-level defaults unless the flag is given after the subcommand.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable verbose (DEBUG) logging",
    )
    return common


def _add_schedule_options(parser: argparse.ArgumentParser, *, required: bool) -> None:
    """Timing and search options shared by ``schedule add`` and ``schedule update``."""
    parser.add_argument("--name", required=required, help="Schedule name")
    parser.add_argument(
        "--frequency", choices=["daily", "weekly", "monthly"], required=required,
    )
    parser.add_argument("--hour", type=int, required=required, help="Hour of day (0-23)")
    parser.add_argument("--minute", type=int, help="Minute (0-59, default 0)")
    parser.add_argument("--day-of-week", type=int, help="0=Sunday .. 6=Saturday (weekly)")
    parser.add_argument("--day-of-month", type=int, help="1-31 (monthly)")
    parser.add_argument(
        "--enabled", action=argparse.BooleanOptionalAction, default=None,
        help="Enable or disable the schedule",
    )
    parser.add_argument("--enabled-at", help="ISO-8601 instant before which runs are suppressed")
    parser.add_argument("--notes", help="Free-form notes")
    parser.add_argument(
        "--keyword", "-k", action="append", dest="keywords",
        help="Core keyword (repeatable)",
    )
    parser.add_argument(
        "--negative", action="append", dest="negative_keywords",
        help="Negative keyword (repeatable)",
    )
    parser.add_argument("--long-tail", type=int, dest="long_tail_per_keyword",
                        help="Long-tail variants per keyword (0-10)")
    parser.add_argument("--language", help="Search language (e.g. zh-TW)")
    parser.add_argument("--region", help="Search region (e.g. tw)")
    parser.add_argument("--pages", type=int, help="Result pages per keyword (1-10)")
    parser.add_argument("--min-words", type=int, help="Minimum body word count (0 = off)")
    for flag, dest in (
        ("--exclude-gov-edu", "exclude_gov_edu"),
        ("--require-images", "require_images"),
        ("--require-email", "require_email"),
        ("--avoid-duplicates", "avoid_duplicates"),
    ):
        parser.add_argument(flag, dest=dest, action=argparse.BooleanOptionalAction, default=None)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Lead discovery engine - scheduled web searches filtered into review leads",
    )
    parser.add_argument("--config", default="config/settings.yaml", help=argparse.SUPPRESS)
    parser.add_argument("--verbose", "-v", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--dry-run", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--export", choices=["json"], help=argparse.SUPPRESS)
    common = _common_options()
    subparsers = parser.add_subparsers(dest="command")

    # --- search subcommand (default) ---
    search_parser = subparsers.add_parser(
        "search", parents=[common], help="Run the searches listed in the settings file",
    )
    search_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Show what would be done without calling the search provider",
    )
    search_parser.add_argument(
        "--export",
        choices=["json"],
        default=argparse.SUPPRESS,
        help="Export saved leads to format (json)",
    )

    # --- serve subcommand ---
    subparsers.add_parser(
        "serve", parents=[common], help="Run the scheduler until interrupted",
    )

    # --- schedule subcommand ---
    schedule_parser = subparsers.add_parser(
        "schedule", parents=[common], help="Manage recurring searches",
    )
    schedule_sub = schedule_parser.add_subparsers(dest="schedule_command", required=True)

    add_parser = schedule_sub.add_parser("add", parents=[common], help="Create a schedule")
    _add_schedule_options(add_parser, required=True)

    schedule_sub.add_parser("list", parents=[common], help="List schedules")

    for name, help_text in (
        ("show", "Show one schedule"),
        ("delete", "Delete a schedule"),
        ("run", "Run a schedule now"),
    ):
        p = schedule_sub.add_parser(name, parents=[common], help=help_text)
        p.add_argument("schedule_id")

    update_parser = schedule_sub.add_parser("update", parents=[common], help="Edit a schedule")
    update_parser.add_argument("schedule_id")
    _add_schedule_options(update_parser, required=False)

    # --- leads subcommand ---
    leads_parser = subparsers.add_parser("leads", parents=[common], help="List saved leads")
    leads_parser.add_argument(
        "--status", choices=[s.value for s in LeadStatus], help="Filter by review status",
    )
    leads_parser.add_argument("--limit", type=int, default=50, help="Max rows (default: 50)")

    # --- keywords subcommand ---
    keywords_parser = subparsers.add_parser(
        "keywords", parents=[common], help="Generate long-tail keyword variants",
    )
    keywords_parser.add_argument(
        "--keyword", "-k", action="append", dest="keywords", required=True,
        help="Core keyword (repeatable)",
    )
    keywords_parser.add_argument(
        "--per-keyword", type=int, default=5, help="Variants per keyword (max 10, default: 5)",
    )
    keywords_parser.add_argument(
        "--provider", choices=available_providers(),
        help="LLM provider (default: llm.provider from settings)",
    )

    # --- usage subcommand ---
    subparsers.add_parser("usage", parents=[common], help="Show today's quota counters")

    args = parser.parse_args(argv)

    # Default to search when no subcommand given
    if args.command is None:
        args.command = "search"

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_scheduler(
    settings: Settings, conn: sqlite3.Connection,
) -> tuple[ScheduleService, TaskRegistry]:
    """Wire guard, registry and service for one process."""
    tz = settings.scheduler.tzinfo
    guard = ExecutionGuard(
        conn,
        make_schedule_runner(settings, conn),
        timezone=tz,
        stale_after=timedelta(seconds=settings.scheduler.stale_run_seconds),
    )
    registry = TaskRegistry(
        conn,
        guard,
        timezone=tz,
        misfire_grace_seconds=settings.scheduler.misfire_grace_seconds,
        sync_interval_seconds=settings.scheduler.sync_interval_seconds,
    )
    service = ScheduleService(conn, registry, guard, timezone=tz)
    return service, registry


def dry_run(settings: Settings) -> None:
    """Print what would happen without actually searching."""
    conn = init_db(settings.database.path)
    quota_manager = QuotaManager(conn, settings.quotas)
    provider = settings.search_provider.provider

    print(f"[DRY RUN] {len(settings.searches)} searches configured")

    can = quota_manager.can_search(provider)
    status = "OK" if can else "BLOCKED"
    print(f"[DRY RUN] provider {provider}: quota {status}, "
          f"remaining lead slots {quota_manager.remaining_leads(provider)}")

    for search in settings.searches:
        print(f"[DRY RUN] keywords {search.keywords}")
        print(f"  Pages: {search.pages}, language {search.language}, region {search.region}")
        print(f"  Long-tail per keyword: {search.long_tail_per_keyword}")
        print(f"  Negative: {search.negative_keywords}")
        print(f"  Filters: exclude_gov_edu={search.exclude_gov_edu} "
              f"require_images={search.require_images} require_email={search.require_email} "
              f"avoid_duplicates={search.avoid_duplicates} min_words={search.min_words}")

    print("[DRY RUN] Would write 0 leads (no requests in dry-run)")
    conn.close()


def _print_summary(summary: RunSummary) -> None:
    total_raw = sum(r.raw_count for r in summary.results)
    total_accepted = sum(r.accepted_count for r in summary.results)
    print(f"\nSearch complete: {total_raw} raw, {total_accepted} accepted, "
          f"{summary.total_saved} new leads written to DB.")
    for r in summary.results:
        print(f"  '{r.keyword}': {r.raw_count} raw, {r.accepted_count} accepted, "
              f"{r.saved_count} new, rejections {r.rejections}")


async def run(settings: Settings, export_format: str | None) -> None:
    """Run every configured search through the pipeline."""
    conn = init_db(settings.database.path)
    summaries: list[RunSummary] = []

    try:
        async with (
            open_search_provider(settings.search_provider) as provider,
            PageFetcher(settings.fetcher) as fetcher,
        ):
            for search in settings.searches:
                summaries.append(
                    await run_search_config(search, provider, fetcher, conn, settings),
                )
    finally:
        conn.close()

    for summary in summaries:
        _print_summary(summary)
        if export_format == "json" and summary.results:
            print(f"\n{export_results_json(summary)}")


async def serve(settings: Settings) -> None:
    """Bootstrap the registry and keep firing triggers until SIGINT/SIGTERM."""
    conn = init_db(settings.database.path)
    _, registry = build_scheduler(settings, conn)
    registry.bootstrap()
    registry.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows: KeyboardInterrupt ends asyncio.run instead

    print(f"Scheduler running with {len(registry.registered_ids())} active schedules. "
          "Press Ctrl+C to stop.")
    try:
        await stop.wait()
    finally:
        registry.shutdown()
        conn.close()


def _schedule_changes(args: argparse.Namespace) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split given CLI options into (timing/meta fields, search fields)."""
    field_names = (
        "name", "frequency", "hour", "minute", "day_of_week", "day_of_month",
        "enabled", "enabled_at", "notes",
    )
    search_names = (
        "keywords", "negative_keywords", "long_tail_per_keyword", "language", "region",
        "pages", "min_words", "exclude_gov_edu", "require_images", "require_email",
        "avoid_duplicates",
    )
    fields = {n: getattr(args, n) for n in field_names if getattr(args, n) is not None}
    search = {n: getattr(args, n) for n in search_names if getattr(args, n) is not None}
    return fields, search


def _print_schedule(schedule: Schedule) -> None:
    status = schedule.last_run_status.value if schedule.last_run_status else "-"
    state = "enabled" if schedule.enabled else "disabled"
    print(f"{schedule.id}  {schedule.name}  [{schedule.frequency} "
          f"'{to_crontab(to_trigger(schedule))}', {state}]  last: {status}  "
          f"next: {schedule.next_run_at.isoformat() if schedule.next_run_at else '-'}")


def cmd_schedule(args: argparse.Namespace, settings: Settings) -> None:
    """Handle schedule subcommands."""
    conn = init_db(settings.database.path)
    service, _ = build_scheduler(settings, conn)
    try:
        if args.schedule_command == "add":
            fields, search = _schedule_changes(args)
            schedule = service.create({**fields, "search": search})
            print(f"Created schedule {schedule.id}")
            _print_schedule(schedule)
        elif args.schedule_command == "list":
            schedules = service.list_all()
            print(f"{len(schedules)} schedules")
            for schedule in schedules:
                _print_schedule(schedule)
        elif args.schedule_command == "show":
            schedule = service.get(args.schedule_id)
            if schedule is None:
                msg = f"Schedule not found: {args.schedule_id}"
                raise ValueError(msg)
            _print_schedule(schedule)
            print(schedule.model_dump_json(indent=2))
        elif args.schedule_command == "update":
            current = service.get(args.schedule_id)
            if current is None:
                msg = f"Schedule not found: {args.schedule_id}"
                raise ValueError(msg)
            fields, search = _schedule_changes(args)
            if search:
                fields["search"] = {**current.search.model_dump(), **search}
            schedule = service.update(args.schedule_id, fields)
            if schedule is not None:
                _print_schedule(schedule)
        elif args.schedule_command == "delete":
            if not service.delete(args.schedule_id):
                msg = f"Schedule not found: {args.schedule_id}"
                raise ValueError(msg)
            print(f"Deleted schedule {args.schedule_id}")
        elif args.schedule_command == "run":
            outcome = asyncio.run(service.run_now(args.schedule_id))
            print(f"Run {outcome.value}")
            schedule = service.get(args.schedule_id)
            if schedule is not None:
                _print_schedule(schedule)
    finally:
        conn.close()


def cmd_leads(args: argparse.Namespace, settings: Settings) -> None:
    """Handle leads subcommand."""
    conn = init_db(settings.database.path)
    try:
        status = LeadStatus(args.status) if args.status else None
        leads = list_leads(conn, status=status, limit=args.limit)
    finally:
        conn.close()
    print(f"{len(leads)} leads")
    for lead in leads:
        print(f"  [{lead.score:3d}] {lead.rank:>4} {lead.activity.value:<7} "
              f"{lead.status.value:<14} {lead.url}  {lead.contact_email or ''}")


def cmd_keywords(args: argparse.Namespace, settings: Settings) -> None:
    """Handle keywords subcommand."""
    provider = get_provider(args.provider or settings.llm.provider)
    variants = generate_long_tail(
        args.keywords, args.per_keyword, provider, model=settings.llm.model,
    )
    print(f"{len(variants)} long-tail keywords")
    for kw in variants:
        print(f"  {kw}")


def cmd_usage(settings: Settings) -> None:
    """Handle usage subcommand."""
    conn = init_db(settings.database.path)
    try:
        providers = sorted({settings.search_provider.provider, *settings.quotas})
        for provider in providers:
            searches_run, leads_found = get_quota(conn, provider)
            limits = settings.quotas.get(provider)
            if limits is None:
                print(f"{provider}: {searches_run} searches, {leads_found} leads today (no limit)")
            else:
                print(f"{provider}: {searches_run}/{limits.max_searches_per_day} searches, "
                      f"{leads_found}/{limits.max_leads_per_day} leads today")
    finally:
        conn.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "serve":
            asyncio.run(serve(settings))
        elif args.command == "schedule":
            cmd_schedule(args, settings)
        elif args.command == "leads":
            cmd_leads(args, settings)
        elif args.command == "keywords":
            cmd_keywords(args, settings)
        elif args.command == "usage":
            cmd_usage(settings)
        elif args.dry_run:
            dry_run(settings)
        else:
            asyncio.run(run(settings, args.export))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
    except (FileNotFoundError, ImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
