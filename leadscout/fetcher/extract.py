"""HTML inspection helpers.

Pure functions over an HTML string, no network access.
"""

import re
from datetime import datetime, timezone

from bs4 import BeautifulSoup

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_TEXT_DATE_RE = re.compile(r"(20\d{2})[./-](0[1-9]|1[0-2])[./-](0[1-9]|[12]\d|3[01])")

# Checked in order; first non-empty value wins.
_DATE_META_SELECTORS: tuple[tuple[str, str], ...] = (
    ('meta[property="article:modified_time"]', "content"),
    ('meta[property="article:published_time"]', "content"),
    ('meta[property="og:updated_time"]', "content"),
    ('meta[name="lastmod"]', "content"),
    ('meta[name="pubdate"]', "content"),
    ("time[datetime]", "datetime"),
)

_MAIN_TEXT_SELECTORS = (".entry-content", ".post-content", "article", "body")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def count_images(html: str) -> int:
    return len(_soup(html).find_all("img"))


def first_email(html: str) -> str | None:
    """Return the first email-shaped token in the raw HTML."""
    if not html:
        return None
    match = EMAIL_RE.search(html)
    return match.group(0) if match else None


def last_modified(html: str) -> datetime | None:
    """Find the most specific modification date the page advertises.

    Meta tags first, then ``<time datetime>``, then a date in the main text.
    """
    soup = _soup(html)
    for selector, attr in _DATE_META_SELECTORS:
        el = soup.select_one(selector)
        value = el.get(attr) if el is not None else None
        if isinstance(value, str) and value.strip():
            parsed = parse_date(value)
            if parsed is not None:
                return parsed

    for selector in _MAIN_TEXT_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = el.get_text(" ")
        if not text.strip():
            continue
        match = _TEXT_DATE_RE.search(text)
        return parse_date(match.group(0)) if match else None
    return None


def parse_date(value: str) -> datetime | None:
    """Parse ISO-8601 (or ``YYYY/MM/DD``, ``YYYY.MM.DD``) into an aware datetime."""
    text = value.strip()
    if not text:
        return None
    match = _TEXT_DATE_RE.fullmatch(text)
    if match:
        text = "-".join(match.groups())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def word_count(html: str) -> int:
    """Count whitespace-delimited tokens of visible body text."""
    soup = _soup(html)
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    root = soup.body or soup
    return len(root.get_text(" ").split())
