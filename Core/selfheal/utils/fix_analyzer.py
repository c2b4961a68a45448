from __future__ import annotations

import re

from selfheal.core.line_grammar import SELECTOR_PATTERN
from selfheal.core.metadata import FailureCategory, FailureRecord, FixPriority, FixSuggestion

DEFAULT_WAIT_SECONDS = 10
WAIT_INCREMENT_SECONDS = 10

TRIED_FOR_PATTERN = re.compile(r"tried for (\d+) second", re.IGNORECASE)
TIMEOUT_VALUE_PATTERN = re.compile(r"timeout.*?(\d+)", re.IGNORECASE)
EXPECTED_PATTERN = re.compile(r"expected:?\s*\[(.*?)\]", re.IGNORECASE)
ACTUAL_PATTERN = re.compile(r"(?:but was|but found):?\s*\[(.*?)\]", re.IGNORECASE)


def current_wait_seconds(message: str) -> int:
    match = TRIED_FOR_PATTERN.search(message) or TIMEOUT_VALUE_PATTERN.search(message)
    return int(match.group(1)) if match else DEFAULT_WAIT_SECONDS


def _selector(failure: FailureRecord) -> FixSuggestion:
    match = SELECTOR_PATTERN.search(failure.error_message)
    selector = match.group("selector").strip() if match else "unknown"
    return FixSuggestion(
        test_id=failure.test_id,
        category=failure.category,
        issue=f"Element not found: {selector}",
        suggested_fix="Find a working alternative on the live page and update the selector map entry",
        priority=FixPriority.HIGH,
        auto_fixable=True,
    )


def _timeout(failure: FailureRecord) -> FixSuggestion:
    current = current_wait_seconds(failure.error_message)
    suggested = current + WAIT_INCREMENT_SECONDS
    return FixSuggestion(
        test_id=failure.test_id,
        category=failure.category,
        issue=f"Timeout waiting for element (current: {current}s)",
        suggested_fix=f"Increase the explicit wait to {suggested}s or wait on a more specific condition",
        priority=FixPriority.MEDIUM,
        auto_fixable=True,
        current_wait_seconds=current,
        suggested_wait_seconds=suggested,
    )


def _assertion(failure: FailureRecord) -> FixSuggestion:
    expected = EXPECTED_PATTERN.search(failure.error_message)
    actual = ACTUAL_PATTERN.search(failure.error_message)
    return FixSuggestion(
        test_id=failure.test_id,
        category=failure.category,
        issue=(
            f"Assertion failed - Expected: [{expected.group(1) if expected else 'unknown'}], "
            f"Actual: [{actual.group(1) if actual else 'unknown'}]"
        ),
        suggested_fix="Review whether the expectation is outdated or the application regressed",
        priority=FixPriority.HIGH,
        auto_fixable=False,
    )


def _configuration(failure: FailureRecord) -> FixSuggestion:
    return FixSuggestion(
        test_id=failure.test_id,
        category=failure.category,
        issue="Test configuration error (setup or teardown method)",
        suggested_fix="Check WebDriver initialization, the suite XML and the build dependencies",
        priority=FixPriority.HIGH,
        auto_fixable=False,
    )


def _unknown(failure: FailureRecord) -> FixSuggestion:
    return FixSuggestion(
        test_id=failure.test_id,
        category=failure.category,
        issue=f"Unknown error: {failure.error_type}",
        suggested_fix=f"Investigate manually. Full error: {failure.error_message}",
        priority=FixPriority.MEDIUM,
        auto_fixable=False,
    )


ANALYZERS = {
    FailureCategory.SELECTOR: _selector,
    FailureCategory.TIMEOUT: _timeout,
    FailureCategory.ASSERTION: _assertion,
    FailureCategory.CONFIGURATION: _configuration,
}


def analyze_failure(failure: FailureRecord) -> FixSuggestion:
    """Suggests a remedy for one failure based on its category."""

    return ANALYZERS.get(failure.category, _unknown)(failure)


def analyze_failures(failures: list[FailureRecord]) -> list[FixSuggestion]:
    return [analyze_failure(failure) for failure in failures]
