from __future__ import annotations

from selfheal.core.metadata import FailureCategory

# First match wins. A message that could fit several categories (a timeout
# that also says "expected ...") resolves to the earliest entry.
CATEGORY_PRIORITY: tuple[tuple[FailureCategory, tuple[str, ...]], ...] = (
    (
        FailureCategory.SELECTOR,
        ("element not found", "no such element", "nosuchelement", "unable to locate"),
    ),
    (FailureCategory.TIMEOUT, ("timeout", "timed out", "wait")),
    (FailureCategory.STALE_ELEMENT, ("stale element", "staleelement")),
    (FailureCategory.NETWORK, ("connection", "network", "unreachable")),
    (FailureCategory.ASSERTION, ("assert", "expected")),
    (
        FailureCategory.CONFIGURATION,
        ("configuration", "beforemethod", "aftermethod", "beforeclass", "afterclass"),
    ),
)


def classify(error_message: str | None, stack_trace: str | None = None) -> FailureCategory:
    """Maps failure text to a category using case-insensitive substring rules."""

    haystack = f"{error_message or ''}\n{stack_trace or ''}".lower()
    for category, needles in CATEGORY_PRIORITY:
        if any(needle in haystack for needle in needles):
            return category
    return FailureCategory.UNKNOWN
