"""Configuration models and YAML loader for the lead discovery engine."""

from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator


class SearchConfig(BaseModel):
    """Search rules embedded in a schedule (or listed under ``searches``)."""

    keywords: list[str] = Field(default_factory=list)
    long_tail_per_keyword: int = Field(default=0, ge=0, le=10)
    language: str = "zh-TW"
    region: str = "tw"
    pages: int = Field(default=1, ge=1, le=10)
    min_words: int = Field(default=0, ge=0)
    exclude_gov_edu: bool = True
    require_images: bool = True
    require_email: bool = False
    avoid_duplicates: bool = False
    negative_keywords: list[str] = Field(default_factory=list)

    @field_validator("keywords", "negative_keywords")
    @classmethod
    def drop_blank(cls, v: list[str]) -> list[str]:
        return [kw.strip() for kw in v if kw and kw.strip()]


class SearchProviderConfig(BaseModel):
    """Search API settings."""

    provider: str = "serpapi"
    api_key_env: str = "SERP_API_KEY"
    results_per_page: int = Field(default=10, ge=1, le=100)
    timeout_s: float = Field(default=30.0, gt=0)


class FetcherConfig(BaseModel):
    """Page fetcher limits. Every fetch carries its own timeout."""

    timeout_s: float = Field(default=8.0, gt=0)
    max_concurrency: int = Field(default=5, ge=1, le=50)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


class QuotaPlatformConfig(BaseModel):
    """Daily limits for a single search provider."""

    max_searches_per_day: int = Field(default=100, ge=1)
    max_leads_per_day: int = Field(default=500, ge=1)


class SchedulerConfig(BaseModel):
    """Trigger registry settings."""

    timezone: str = "UTC"
    sync_interval_seconds: int = Field(default=60, ge=0)
    misfire_grace_seconds: int = Field(default=300, ge=1)
    stale_run_seconds: int = Field(default=21600, ge=1)

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"unknown timezone '{v}'"
            raise ValueError(msg) from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class ScoringConfig(BaseModel):
    """Weights for rule-based relevance scoring."""

    base_score: float = 50.0
    position_bonus: float = 20.0
    keyword_match_bonus: float = 10.0
    email_bonus: float = 10.0
    active_bonus: float = 10.0
    normal_bonus: float = 5.0


class LLMConfig(BaseModel):
    """Text-generation provider used for long-tail keyword variants."""

    provider: str = "gemini"
    model: str | None = None


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/leads.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    search_provider: SearchProviderConfig = Field(default_factory=SearchProviderConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    quotas: dict[str, QuotaPlatformConfig] = Field(default_factory=dict)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    searches: list[SearchConfig] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
