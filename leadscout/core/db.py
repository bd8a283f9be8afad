"""SQLite database layer for leads, schedules, quota, and search run tracking."""

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path

from leadscout.core.config import SearchConfig
from leadscout.core.schemas import Lead, LeadStatus, RunStatus, Schedule, utc_now

_LEADS_TABLE = """
CREATE TABLE IF NOT EXISTS leads (
    id                TEXT    PRIMARY KEY,
    title             TEXT    NOT NULL,
    url               TEXT    NOT NULL UNIQUE,
    domain            TEXT    NOT NULL,
    snippet           TEXT    NOT NULL DEFAULT '',
    keywords_json     TEXT    NOT NULL DEFAULT '[]',
    score             INTEGER NOT NULL DEFAULT 0,
    rank              TEXT    NOT NULL DEFAULT '',
    contact_email     TEXT,
    status            TEXT    NOT NULL DEFAULT 'pending_review',
    last_modified_at  TEXT,
    activity          TEXT    NOT NULL DEFAULT 'Unknown',
    created_at        TEXT    NOT NULL
);
"""

_SCHEDULES_TABLE = """
CREATE TABLE IF NOT EXISTS schedules (
    id              TEXT    PRIMARY KEY,
    name            TEXT    NOT NULL,
    frequency       TEXT    NOT NULL,
    hour            INTEGER NOT NULL DEFAULT 0,
    minute          INTEGER NOT NULL DEFAULT 0,
    day_of_week     INTEGER,
    day_of_month    INTEGER,
    enabled         INTEGER NOT NULL DEFAULT 1,
    enabled_at      TEXT    NOT NULL,
    notes           TEXT    NOT NULL DEFAULT '',
    search_json     TEXT    NOT NULL DEFAULT '{}',
    last_run_at     TEXT,
    last_run_status TEXT,
    next_run_at     TEXT,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL
);
"""

_QUOTA_TABLE = """
CREATE TABLE IF NOT EXISTS quota (
    provider         TEXT NOT NULL,
    date             TEXT NOT NULL,
    searches_run     INTEGER NOT NULL DEFAULT 0,
    leads_found      INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (provider, date)
);
"""

_SEARCH_RUNS_TABLE = """
CREATE TABLE IF NOT EXISTS search_runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    schedule_id     TEXT,
    provider        TEXT NOT NULL,
    keyword         TEXT NOT NULL,
    config_json     TEXT NOT NULL,
    raw_count       INTEGER NOT NULL,
    accepted_count  INTEGER NOT NULL,
    saved_count     INTEGER NOT NULL,
    started_at      TEXT NOT NULL,
    finished_at     TEXT NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_LEADS_TABLE)
    conn.execute(_SCHEDULES_TABLE)
    conn.execute(_QUOTA_TABLE)
    conn.execute(_SEARCH_RUNS_TABLE)
    conn.commit()
    return conn


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Leads
# ---------------------------------------------------------------------------


def create_lead(conn: sqlite3.Connection, lead: Lead) -> bool:
    """Insert a lead. URL is unique.

    Returns True if a new row was inserted, False if the URL already exists.
    """
    try:
        conn.execute(
            """
            INSERT INTO leads
                (id, title, url, domain, snippet, keywords_json, score, rank,
                 contact_email, status, last_modified_at, activity, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                lead.id,
                lead.title,
                lead.url,
                lead.domain,
                lead.snippet,
                json.dumps(lead.keywords, ensure_ascii=False),
                lead.score,
                lead.rank,
                lead.contact_email,
                lead.status.value,
                _iso(lead.last_modified_at),
                lead.activity.value,
                lead.created_at.isoformat(),
            ),
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        conn.rollback()
        return False


def _row_to_lead(row: sqlite3.Row) -> Lead:
    return Lead(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        domain=row["domain"],
        snippet=row["snippet"],
        keywords=json.loads(row["keywords_json"]),
        score=row["score"],
        rank=row["rank"],
        contact_email=row["contact_email"],
        status=row["status"],
        last_modified_at=row["last_modified_at"],
        activity=row["activity"],
        created_at=row["created_at"],
    )


def find_lead_by_url(conn: sqlite3.Connection, url: str) -> Lead | None:
    row = conn.execute("SELECT * FROM leads WHERE url = ?", (url,)).fetchone()
    return _row_to_lead(row) if row is not None else None


def list_leads(
    conn: sqlite3.Connection,
    status: LeadStatus | str | None = None,
    limit: int = 100,
) -> list[Lead]:
    """Return leads, newest first, optionally filtered by review status."""
    if status is not None:
        value = status.value if isinstance(status, LeadStatus) else status
        rows = conn.execute(
            "SELECT * FROM leads WHERE status = ? ORDER BY created_at DESC LIMIT ?",
            (value, limit),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM leads ORDER BY created_at DESC LIMIT ?", (limit,),
        ).fetchall()
    return [_row_to_lead(r) for r in rows]


def list_lead_domains(conn: sqlite3.Connection) -> set[str]:
    """Return the lowercased domains of every persisted lead."""
    rows = conn.execute("SELECT DISTINCT domain FROM leads WHERE domain != ''").fetchall()
    return {str(r["domain"]).lower() for r in rows}


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


def _schedule_params(schedule: Schedule) -> tuple[object, ...]:
    return (
        schedule.name,
        schedule.frequency,
        schedule.hour,
        schedule.minute,
        schedule.day_of_week,
        schedule.day_of_month,
        int(schedule.enabled),
        schedule.enabled_at.isoformat(),
        schedule.notes,
        schedule.search.model_dump_json(),
        _iso(schedule.last_run_at),
        schedule.last_run_status.value if schedule.last_run_status else None,
        _iso(schedule.next_run_at),
    )


def create_schedule(conn: sqlite3.Connection, schedule: Schedule) -> None:
    conn.execute(
        """
        INSERT INTO schedules
            (name, frequency, hour, minute, day_of_week, day_of_month, enabled,
             enabled_at, notes, search_json, last_run_at, last_run_status,
             next_run_at, id, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            *_schedule_params(schedule),
            schedule.id,
            schedule.created_at.isoformat(),
            schedule.updated_at.isoformat(),
        ),
    )
    conn.commit()


def _row_to_schedule(row: sqlite3.Row) -> Schedule:
    return Schedule(
        id=row["id"],
        name=row["name"],
        frequency=row["frequency"],
        hour=row["hour"],
        minute=row["minute"],
        day_of_week=row["day_of_week"],
        day_of_month=row["day_of_month"],
        enabled=bool(row["enabled"]),
        enabled_at=row["enabled_at"],
        notes=row["notes"],
        search=SearchConfig.model_validate_json(row["search_json"]),
        last_run_at=row["last_run_at"],
        last_run_status=row["last_run_status"],
        next_run_at=row["next_run_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def get_schedule(conn: sqlite3.Connection, schedule_id: str) -> Schedule | None:
    row = conn.execute("SELECT * FROM schedules WHERE id = ?", (schedule_id,)).fetchone()
    return _row_to_schedule(row) if row is not None else None


def list_schedules(conn: sqlite3.Connection) -> list[Schedule]:
    """Return all schedules, newest first."""
    rows = conn.execute("SELECT * FROM schedules ORDER BY created_at DESC").fetchall()
    return [_row_to_schedule(r) for r in rows]


def update_schedule(conn: sqlite3.Connection, schedule: Schedule) -> bool:
    """Write every column of ``schedule`` and bump ``updated_at``.

    Returns False if no schedule with that id exists.
    """
    cursor = conn.execute(
        """
        UPDATE schedules SET
            name = ?, frequency = ?, hour = ?, minute = ?, day_of_week = ?,
            day_of_month = ?, enabled = ?, enabled_at = ?, notes = ?,
            search_json = ?, last_run_at = ?, last_run_status = ?,
            next_run_at = ?, updated_at = ?
        WHERE id = ?
        """,
        (*_schedule_params(schedule), utc_now().isoformat(), schedule.id),
    )
    conn.commit()
    return cursor.rowcount > 0


def record_run_state(
    conn: sqlite3.Connection,
    schedule_id: str,
    status: RunStatus,
    *,
    last_run_at: datetime | None = None,
    next_run_at: datetime | None = None,
) -> bool:
    """Persist run-state fields without touching ``updated_at``.

    ``last_run_at``/``next_run_at`` are only written when given.
    """
    cursor = conn.execute(
        """
        UPDATE schedules SET
            last_run_status = ?,
            last_run_at = COALESCE(?, last_run_at),
            next_run_at = COALESCE(?, next_run_at)
        WHERE id = ?
        """,
        (status.value, _iso(last_run_at), _iso(next_run_at), schedule_id),
    )
    conn.commit()
    return cursor.rowcount > 0


def claim_run(
    conn: sqlite3.Connection,
    schedule_id: str,
    now: datetime,
    stale_before: datetime,
) -> bool:
    """Mark a schedule ``pending`` unless another process already holds the run.

    A ``pending`` row whose ``last_run_at`` is older than ``stale_before`` is
    treated as abandoned (its process died mid-run) and may be claimed again.
    Returns False when the run is held elsewhere or the schedule is gone.
    """
    cursor = conn.execute(
        """
        UPDATE schedules SET last_run_status = ?, last_run_at = ?
        WHERE id = ?
          AND (last_run_status IS NULL
               OR last_run_status != ?
               OR last_run_at IS NULL
               OR last_run_at < ?)
        """,
        (
            RunStatus.PENDING.value,
            _iso(now),
            schedule_id,
            RunStatus.PENDING.value,
            _iso(stale_before),
        ),
    )
    conn.commit()
    return cursor.rowcount > 0


def delete_schedule(conn: sqlite3.Connection, schedule_id: str) -> bool:
    cursor = conn.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
    conn.commit()
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------


def get_quota(
    conn: sqlite3.Connection,
    provider: str,
    target_date: date | None = None,
) -> tuple[int, int]:
    """Return (searches_run, leads_found) for today (or given date)."""
    d = (target_date or date.today()).isoformat()
    row = conn.execute(
        "SELECT searches_run, leads_found FROM quota WHERE provider = ? AND date = ?",
        (provider, d),
    ).fetchone()
    if row is None:
        return (0, 0)
    return (row["searches_run"], row["leads_found"])


def update_quota(
    conn: sqlite3.Connection,
    provider: str,
    searches_delta: int = 0,
    leads_delta: int = 0,
    target_date: date | None = None,
) -> None:
    """Increment quota counters for today (or given date). Creates row if needed."""
    d = (target_date or date.today()).isoformat()
    conn.execute(
        """
        INSERT INTO quota (provider, date, searches_run, leads_found)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(provider, date)
        DO UPDATE SET
            searches_run = searches_run + excluded.searches_run,
            leads_found = leads_found + excluded.leads_found
        """,
        (provider, d, searches_delta, leads_delta),
    )
    conn.commit()


# ---------------------------------------------------------------------------
# Search runs
# ---------------------------------------------------------------------------


def insert_search_run(
    conn: sqlite3.Connection,
    provider: str,
    keyword: str,
    config_json: str,
    raw_count: int,
    accepted_count: int,
    saved_count: int,
    started_at: datetime,
    finished_at: datetime,
    schedule_id: str | None = None,
) -> int:
    """Record a completed keyword run. Returns the row ID."""
    cursor = conn.execute(
        """
        INSERT INTO search_runs
            (schedule_id, provider, keyword, config_json, raw_count,
             accepted_count, saved_count, started_at, finished_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            schedule_id,
            provider,
            keyword,
            config_json,
            raw_count,
            accepted_count,
            saved_count,
            started_at.isoformat(),
            finished_at.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0
