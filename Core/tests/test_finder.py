from __future__ import annotations

import pytest
from selenium.common.exceptions import WebDriverException

from selfheal.core.finder import SelectorFinder
from selfheal.core.metadata import Locator, LocatorKind, Stability
from selfheal.core.strategies import DomainPatterns, Simplification, StructuralExtraction
from selfheal.utils.scoring import assess_stability, dedupe_candidates, rank_candidates
from tests.helpers import FakeProbe

EMAIL_CSS = Locator(LocatorKind.CSS, 'input[name="Email"]')


def test_finds_name_locator_for_broken_email_selector():
    probe = FakeProbe(resolvable={Locator(LocatorKind.NAME, "Email")})

    best = SelectorFinder().find_best_selector(EMAIL_CSS, probe, "http://localhost:8000/login")

    assert best.locator == Locator(LocatorKind.NAME, "Email")
    assert best.score == 92
    assert best.stability is Stability.HIGH
    assert best.probe_result.found is True
    assert probe.navigations == ["http://localhost:8000/login"]


def test_working_selector_is_returned_unchanged():
    probe = FakeProbe(resolvable={EMAIL_CSS})

    best = SelectorFinder().find_best_selector(EMAIL_CSS, probe)

    assert best.locator == EMAIL_CSS
    assert best.score == 100
    assert best.rationale == "Current selector works"
    assert len(probe.located) == 1


def test_returns_none_when_nothing_resolves_and_releases_session():
    probe = FakeProbe()

    assert SelectorFinder().find_best_selector(EMAIL_CSS, probe) is None
    assert probe.opened == 1
    assert probe.closed == 1


def test_navigation_error_ends_search_and_releases_session():
    probe = FakeProbe(resolvable={EMAIL_CSS}, fail_on_navigate=True)

    assert SelectorFinder().find_best_selector(EMAIL_CSS, probe, "http://localhost:8000") is None
    assert probe.closed == 1
    assert probe.located == []


class CrashingSessionProbe(FakeProbe):
    def __init__(self, crash_kind: LocatorKind) -> None:
        super().__init__()
        self.crash_kind = crash_kind

    def locate(self, locator, timeout_ms):
        if locator.kind is self.crash_kind:
            raise WebDriverException("invalid session id")
        return super().locate(locator, timeout_ms)


def test_browser_crash_mid_search_returns_none_and_releases_session():
    probe = CrashingSessionProbe(LocatorKind.NAME)

    assert SelectorFinder().find_best_selector(EMAIL_CSS, probe, "http://localhost:8000/login") is None
    assert probe.closed == 1
    assert probe.located[0][0] == EMAIL_CSS


def test_candidates_are_checked_with_shorter_timeout():
    probe = FakeProbe()
    finder = SelectorFinder(probe_timeout_ms=5000, candidate_timeout_ms=3000)

    finder.find_best_selector(EMAIL_CSS, probe)

    assert probe.located[0] == (EMAIL_CSS, 5000)
    assert {timeout for _, timeout in probe.located[1:]} == {3000}


def test_generated_candidates_are_unique_and_exclude_current():
    candidates = SelectorFinder().generate_candidates(EMAIL_CSS)
    locators = [candidate.locator for candidate in candidates]

    assert EMAIL_CSS not in locators
    assert len(locators) == len(set(locators))
    assert Locator(LocatorKind.ID, "Email") in locators


def test_structural_extraction_reads_id_class_and_attributes():
    proposals = StructuralExtraction().propose(Locator(LocatorKind.CSS, 'input#login.btn-primary[type="submit"]'))
    by_locator = {candidate.locator: candidate.score for candidate in proposals}

    assert by_locator[Locator(LocatorKind.ID, "login")] == 95
    assert by_locator[Locator(LocatorKind.CSS, ".btn-primary")] == 70
    assert by_locator[Locator(LocatorKind.CSS, 'input[type="submit"]')] == 75
    assert StructuralExtraction().propose(Locator(LocatorKind.ID, "login")) == []


def test_domain_patterns_match_hint_words():
    proposals = DomainPatterns().propose(Locator(LocatorKind.CSS, "#submit-button"))

    assert [candidate.locator.value for candidate in proposals] == ['button[type="submit"]', 'input[type="submit"]']


def test_simplification_drops_positions_and_depth():
    proposals = Simplification().propose(
        Locator(LocatorKind.CSS, "div.page > form > div:nth-child(3) > input.login-button")
    )
    values = {candidate.locator.value: candidate.score for candidate in proposals}

    assert values["div.page > form > div > input.login-button"] == 60
    assert values["div:nth-child(3) > input.login-button"] == 65


@pytest.mark.parametrize(
    ("locator", "expected"),
    [
        (Locator(LocatorKind.ID, "Email"), Stability.HIGH),
        (Locator(LocatorKind.NAME, "Email"), Stability.HIGH),
        (Locator(LocatorKind.CSS, 'input[name="Email"]'), Stability.HIGH),
        (Locator(LocatorKind.CSS, "ul > li:nth-child(2)"), Stability.LOW),
        (Locator(LocatorKind.CSS, "ul li:nth-of-type(1)"), Stability.LOW),
        (Locator(LocatorKind.CSS, "a > b > c > d > e"), Stability.LOW),
        (Locator(LocatorKind.CSS, ".login-button"), Stability.MEDIUM),
        (Locator(LocatorKind.XPATH, "//form//input"), Stability.MEDIUM),
    ],
)
def test_assess_stability(locator, expected):
    assert assess_stability(locator) is expected


def test_dedupe_keeps_best_score_and_rank_is_stable():
    structural = StructuralExtraction().propose(EMAIL_CSS)
    domain = DomainPatterns().propose(EMAIL_CSS)

    merged = dedupe_candidates(structural + domain, exclude=EMAIL_CSS)
    ranked = rank_candidates(merged)

    scores = {candidate.locator: candidate.score for candidate in merged}
    assert scores[Locator(LocatorKind.NAME, "Email")] == 92
    assert [candidate.score for candidate in ranked] == sorted((c.score for c in merged), reverse=True)
