"""Tests for filter stages: each stage in isolation + the stage chain."""

from datetime import datetime

import pytest

from leadscout.core.schemas import Candidate, RejectionReason
from leadscout.fetcher.base import PageInspector
from leadscout.pipeline.matcher import (
    MIN_IMAGES,
    DomainDeduplicationFilter,
    EmailFilter,
    ExcludeGovEduFilter,
    ImageFilter,
    NegativeKeywordsFilter,
    UrlDeduplicationFilter,
    WordCountFilter,
    run_stage_chain,
)


class FakeInspector(PageInspector):
    """Answers page checks from dicts keyed by URL and records every call."""

    def __init__(
        self,
        images: dict[str, int] | None = None,
        emails: dict[str, str] | None = None,
        words: dict[str, int] | None = None,
    ) -> None:
        self.images = images or {}
        self.emails = emails or {}
        self.words = words or {}
        self.calls: list[tuple[str, str]] = []

    async def has_enough_images(self, url: str, minimum: int) -> bool:
        self.calls.append(("images", url))
        return self.images.get(url, 0) >= minimum

    async def extract_email(self, url: str) -> str | None:
        self.calls.append(("email", url))
        return self.emails.get(url)

    async def extract_last_modified(self, url: str) -> datetime | None:
        self.calls.append(("last_modified", url))
        return None

    async def count_words(self, url: str) -> int | None:
        self.calls.append(("words", url))
        return self.words.get(url)


def _candidate(
    name: str = "a",
    *,
    domain: str | None = None,
    title: str = "Coffee Shop",
    snippet: str = "",
    reasons: tuple[RejectionReason, ...] = (),
) -> Candidate:
    domain = domain or f"{name}.com"
    return Candidate(
        url=f"https://{domain}/{name}",
        title=title,
        snippet=snippet,
        domain=domain,
        keyword="coffee shops",
        reasons=reasons,
    )


# ---------------------------------------------------------------------------
# ExcludeGovEduFilter
# ---------------------------------------------------------------------------


class TestExcludeGovEduFilter:
    @pytest.mark.parametrize("domain", ["mit.edu", "ntu.edu.tw", "data.gov", "moea.gov.tw"])
    def test_rejects_gov_and_edu(self, domain: str) -> None:
        [c] = ExcludeGovEduFilter(True)([_candidate(domain=domain)])
        assert c.reasons == (RejectionReason.EXCLUDE_GOV_EDU,)

    def test_keeps_commercial(self) -> None:
        [c] = ExcludeGovEduFilter(True)([_candidate(domain="beans.com")])
        assert c.accepted

    def test_substring_match_on_host(self) -> None:
        [c] = ExcludeGovEduFilter(True)([_candidate(domain="foo.education.com")])
        assert c.reasons == (RejectionReason.EXCLUDE_GOV_EDU,)

    def test_disabled(self) -> None:
        [c] = ExcludeGovEduFilter(False)([_candidate(domain="mit.edu")])
        assert c.accepted

    def test_does_not_drop_candidates(self) -> None:
        result = ExcludeGovEduFilter(True)([_candidate("a"), _candidate(domain="x.edu")])
        assert len(result) == 2


# ---------------------------------------------------------------------------
# NegativeKeywordsFilter
# ---------------------------------------------------------------------------


class TestNegativeKeywordsFilter:
    def test_title_match_case_insensitive(self) -> None:
        [c] = NegativeKeywordsFilter(["FRANCHISE"])([_candidate(title="Coffee franchise deals")])
        assert c.reasons == (RejectionReason.NEGATIVE_KEYWORD,)

    def test_snippet_match(self) -> None:
        [c] = NegativeKeywordsFilter(["jobs"])([_candidate(snippet="Barista Jobs near you")])
        assert c.reasons == (RejectionReason.NEGATIVE_KEYWORD,)

    def test_no_match(self) -> None:
        [c] = NegativeKeywordsFilter(["jobs"])([_candidate(title="Beans", snippet="roastery")])
        assert c.accepted

    def test_empty_list_noop(self) -> None:
        candidates = [_candidate()]
        assert NegativeKeywordsFilter(["", "  "])(candidates) == candidates


# ---------------------------------------------------------------------------
# UrlDeduplicationFilter
# ---------------------------------------------------------------------------


class TestUrlDeduplicationFilter:
    def test_drops_repeats_within_batch(self) -> None:
        f = UrlDeduplicationFilter()
        assert len(f([_candidate("a"), _candidate("a"), _candidate("b")])) == 2

    def test_stateful_across_pages(self) -> None:
        f = UrlDeduplicationFilter()
        f([_candidate("a")])
        result = f([_candidate("a"), _candidate("c")])
        assert [c.url for c in result] == ["https://c.com/c"]


# ---------------------------------------------------------------------------
# ImageFilter
# ---------------------------------------------------------------------------


class TestImageFilter:
    async def test_rejects_below_minimum(self) -> None:
        a, b = _candidate("a"), _candidate("b")
        inspector = FakeInspector(images={a.url: MIN_IMAGES, b.url: MIN_IMAGES - 1})
        result = await ImageFilter(inspector, True)([a, b])
        assert result[0].accepted
        assert result[1].reasons == (RejectionReason.INSUFFICIENT_IMAGES,)

    async def test_total_wipeout_waived(self) -> None:
        candidates = [_candidate("a"), _candidate("b"), _candidate("c")]
        result = await ImageFilter(FakeInspector(), True)(candidates)
        assert all(c.accepted for c in result)

    async def test_wipeout_only_considers_surviving_candidates(self) -> None:
        rejected = _candidate("edu", reasons=(RejectionReason.EXCLUDE_GOV_EDU,))
        survivor = _candidate("a")
        inspector = FakeInspector(images={rejected.url: 10})
        result = await ImageFilter(inspector, True)([rejected, survivor])
        assert result[1].accepted
        assert result[0].reasons == (RejectionReason.EXCLUDE_GOV_EDU,)

    async def test_skips_already_rejected(self) -> None:
        rejected = _candidate("x", reasons=(RejectionReason.NEGATIVE_KEYWORD,))
        inspector = FakeInspector()
        await ImageFilter(inspector, True)([rejected, _candidate("a")])
        assert ("images", rejected.url) not in inspector.calls

    async def test_disabled(self) -> None:
        inspector = FakeInspector()
        result = await ImageFilter(inspector, False)([_candidate()])
        assert result[0].accepted
        assert inspector.calls == []


# ---------------------------------------------------------------------------
# EmailFilter
# ---------------------------------------------------------------------------


class TestEmailFilter:
    async def test_records_email(self) -> None:
        c = _candidate("a")
        result = await EmailFilter(FakeInspector(emails={c.url: "hi@a.com"}), True)([c])
        assert result[0].accepted
        assert result[0].contact_email == "hi@a.com"

    async def test_rejects_without_email(self) -> None:
        result = await EmailFilter(FakeInspector(), True)([_candidate()])
        assert result[0].reasons == (RejectionReason.NO_EMAIL,)

    async def test_disabled(self) -> None:
        inspector = FakeInspector()
        result = await EmailFilter(inspector, False)([_candidate()])
        assert result[0].accepted
        assert inspector.calls == []


# ---------------------------------------------------------------------------
# DomainDeduplicationFilter
# ---------------------------------------------------------------------------


class TestDomainDeduplicationFilter:
    def test_rejects_known_domain(self) -> None:
        known = {"a.com"}
        [c] = DomainDeduplicationFilter(known, True)([_candidate("a")])
        assert c.reasons == (RejectionReason.DUPLICATE_DOMAIN,)

    def test_case_insensitive(self) -> None:
        [c] = DomainDeduplicationFilter({"a.com"}, True)([_candidate(domain="A.COM")])
        assert c.reasons == (RejectionReason.DUPLICATE_DOMAIN,)

    def test_accepted_domain_added_immediately(self) -> None:
        known: set[str] = set()
        first, second = DomainDeduplicationFilter(known, True)(
            [_candidate("p1", domain="a.com"), _candidate("p2", domain="a.com")],
        )
        assert first.accepted
        assert second.reasons == (RejectionReason.DUPLICATE_DOMAIN,)
        assert known == {"a.com"}

    def test_rejected_candidate_not_added(self) -> None:
        known: set[str] = set()
        rejected = _candidate("a", reasons=(RejectionReason.NO_EMAIL,))
        DomainDeduplicationFilter(known, True)([rejected])
        assert known == set()

    def test_disabled_never_rejects(self) -> None:
        known = {"a.com"}
        result = DomainDeduplicationFilter(known, False)(
            [_candidate("p1", domain="a.com"), _candidate("p2", domain="a.com")],
        )
        assert all(c.accepted for c in result)


# ---------------------------------------------------------------------------
# WordCountFilter
# ---------------------------------------------------------------------------


class TestWordCountFilter:
    async def test_rejects_short_pages(self) -> None:
        a, b = _candidate("a"), _candidate("b")
        inspector = FakeInspector(words={a.url: 300, b.url: 20})
        result = await WordCountFilter(inspector, 100)([a, b])
        assert result[0].accepted
        assert result[0].word_count == 300
        assert result[1].reasons == (RejectionReason.INSUFFICIENT_WORDS,)

    async def test_fetch_failure_rejects(self) -> None:
        result = await WordCountFilter(FakeInspector(), 1)([_candidate()])
        assert result[0].reasons == (RejectionReason.INSUFFICIENT_WORDS,)

    async def test_zero_minimum_skips_fetch(self) -> None:
        inspector = FakeInspector()
        result = await WordCountFilter(inspector, 0)([_candidate()])
        assert result[0].accepted
        assert inspector.calls == []


# ---------------------------------------------------------------------------
# Stage chain
# ---------------------------------------------------------------------------


class TestRunStageChain:
    async def test_mixes_sync_and_async_stages(self) -> None:
        edu = _candidate(domain="school.edu")
        shop = _candidate("shop")
        inspector = FakeInspector(images={shop.url: 5}, emails={shop.url: "a@shop.com"})
        result = await run_stage_chain(
            [edu, shop],
            [
                ExcludeGovEduFilter(True),
                ImageFilter(inspector, True),
                EmailFilter(inspector, True),
            ],
        )
        assert result[0].reasons == (RejectionReason.EXCLUDE_GOV_EDU,)
        assert result[1].accepted
        assert result[1].contact_email == "a@shop.com"

    async def test_expensive_stages_skip_cheap_rejections(self) -> None:
        edu = _candidate(domain="school.edu")
        inspector = FakeInspector()
        await run_stage_chain(
            [edu],
            [ExcludeGovEduFilter(True), EmailFilter(inspector, True), WordCountFilter(inspector, 5)],
        )
        assert inspector.calls == []

    async def test_empty_chain(self) -> None:
        candidates = [_candidate()]
        assert await run_stage_chain(candidates, []) == candidates
