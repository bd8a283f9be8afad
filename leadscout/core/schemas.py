"""Core data models: search hits, candidates, leads, and schedules."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from leadscout.core.config import SearchConfig

UNTITLED = "(untitled)"

Frequency = Literal["daily", "weekly", "monthly"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    """Interpret naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_domain(url: str) -> str | None:
    """Return the lowercased host of ``url`` without a leading ``www.``.

    Returns None for URLs without a resolvable host.
    """
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


class RejectionReason(str, Enum):
    """Why a candidate was rejected at a pipeline stage."""

    INVALID_URL = "invalid_url"
    EXCLUDE_GOV_EDU = "exclude_gov_edu"
    NEGATIVE_KEYWORD = "negative_keyword"
    INSUFFICIENT_IMAGES = "insufficient_images"
    NO_EMAIL = "no_email"
    DUPLICATE_DOMAIN = "duplicate_domain"
    INSUFFICIENT_WORDS = "insufficient_words"


class ActivityStatus(str, Enum):
    ACTIVE = "Active"
    NORMAL = "Normal"
    OLD = "Old"
    UNKNOWN = "Unknown"


class LeadStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class RunStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class SearchQuery(BaseModel):
    """One page request sent to a search provider."""

    model_config = ConfigDict(frozen=True)

    keyword: str
    language: str
    region: str
    num: int = 10
    offset: int = 0


class SearchHit(BaseModel):
    """A raw organic result as returned by the search provider."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    link: str = ""
    snippet: str | None = None


class Candidate(BaseModel):
    """A search result under evaluation by the filter pipeline.

    Frozen: every stage returns a new instance. An empty ``reasons`` tuple
    means the candidate is accepted.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = UNTITLED
    snippet: str = ""
    domain: str = ""
    keyword: str
    position: int = Field(default=1, ge=1)
    reasons: tuple[RejectionReason, ...] = ()
    contact_email: str | None = None
    last_modified_at: datetime | None = None
    activity: ActivityStatus = ActivityStatus.UNKNOWN
    word_count: int | None = None

    @classmethod
    def from_hit(cls, hit: SearchHit, keyword: str, position: int) -> "Candidate":
        """Build a candidate from a raw hit, tolerating missing metadata."""
        domain = resolve_domain(hit.link)
        candidate = cls(
            url=hit.link,
            title=(hit.title or "").strip() or UNTITLED,
            snippet=(hit.snippet or "").strip(),
            domain=domain or "",
            keyword=keyword,
            position=position,
        )
        if domain is None:
            candidate = candidate.reject(RejectionReason.INVALID_URL)
        return candidate

    @property
    def accepted(self) -> bool:
        return not self.reasons

    def reject(self, reason: RejectionReason) -> "Candidate":
        if reason in self.reasons:
            return self
        return self.model_copy(update={"reasons": (*self.reasons, reason)})

    def waive(self, reason: RejectionReason) -> "Candidate":
        if reason not in self.reasons:
            return self
        return self.model_copy(
            update={"reasons": tuple(r for r in self.reasons if r is not reason)},
        )


class Lead(BaseModel):
    """A persisted, accepted candidate awaiting human review."""

    id: str
    title: str
    url: str
    domain: str
    snippet: str = ""
    keywords: list[str] = Field(default_factory=list)
    score: int = Field(default=0, ge=0, le=100)
    rank: str = ""
    contact_email: str | None = None
    status: LeadStatus = LeadStatus.PENDING_REVIEW
    last_modified_at: datetime | None = None
    activity: ActivityStatus = ActivityStatus.UNKNOWN
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("last_modified_at", "created_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class ScheduleFields(BaseModel):
    """Validated schedule payload used for creation and updates.

    Exactly one of ``day_of_week``/``day_of_month`` is kept, selected by
    ``frequency``; the other is cleared.
    """

    name: str = Field(min_length=1)
    frequency: Frequency
    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    enabled: bool = True
    enabled_at: datetime | None = None
    notes: str = ""
    search: SearchConfig = Field(default_factory=SearchConfig)

    @field_validator("enabled_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return _aware(v)

    @model_validator(mode="after")
    def day_field_matches_frequency(self) -> "ScheduleFields":
        if self.frequency == "weekly":
            if self.day_of_week is None:
                msg = "day_of_week is required for weekly schedules"
                raise ValueError(msg)
            self.day_of_month = None
        elif self.frequency == "monthly":
            if self.day_of_month is None:
                msg = "day_of_month is required for monthly schedules"
                raise ValueError(msg)
            self.day_of_week = None
        else:
            self.day_of_week = None
            self.day_of_month = None
        return self


class Schedule(BaseModel):
    """A persisted recurring job definition.

    Loaded from storage as-is: ``frequency`` is not restricted here so the
    trigger translator stays total over whatever rows exist.
    """

    id: str
    name: str
    frequency: str = "daily"
    hour: int = 0
    minute: int = 0
    day_of_week: int | None = None
    day_of_month: int | None = None
    enabled: bool = True
    enabled_at: datetime = Field(default_factory=utc_now)
    notes: str = ""
    search: SearchConfig = Field(default_factory=SearchConfig)
    last_run_at: datetime | None = None
    last_run_status: RunStatus | None = None
    next_run_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator(
        "enabled_at", "last_run_at", "next_run_at", "created_at", "updated_at",
    )
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return _aware(v)

    def fields(self) -> dict[str, object]:
        """Return the user-editable fields as a ScheduleFields-compatible dict."""
        return self.model_dump(include=set(ScheduleFields.model_fields))


class KeywordRunResult(BaseModel):
    """Summary of one keyword's pass through pipeline and sink."""

    keyword: str
    raw_count: int
    accepted_count: int
    saved_count: int
    rejections: dict[str, int] = Field(default_factory=dict)
    leads: list[Lead] = Field(default_factory=list)


class RunSummary(BaseModel):
    """Aggregate result of one search-configuration run."""

    keywords: list[str] = Field(default_factory=list)
    results: list[KeywordRunResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None

    @property
    def total_saved(self) -> int:
        return sum(r.saved_count for r in self.results)
