from __future__ import annotations

from typing import Iterable

from selfheal.core.metadata import Candidate, Locator, LocatorKind, Stability

POSITIONAL_MARKERS = (":nth-child(", ":nth-of-type(", ":nth-last-child(", ":nth-last-of-type(")
MAX_STABLE_DEPTH = 4


def assess_stability(locator: Locator) -> Stability:
    value = locator.value
    if locator.kind in (LocatorKind.ID, LocatorKind.NAME):
        return Stability.HIGH
    if any(marker in value for marker in POSITIONAL_MARKERS):
        return Stability.LOW
    if len(value.split(" > ")) > MAX_STABLE_DEPTH:
        return Stability.LOW
    if "[name=" in value or "[id=" in value:
        return Stability.HIGH
    if locator.kind is LocatorKind.CLASS or value.startswith(".") or "[class=" in value:
        return Stability.MEDIUM
    return Stability.MEDIUM


def dedupe_candidates(candidates: Iterable[Candidate], exclude: Locator | None = None) -> list[Candidate]:
    """Keeps the highest-scoring proposal per locator, in first-seen order."""

    best: dict[Locator, Candidate] = {}
    for candidate in candidates:
        if candidate.locator == exclude:
            continue
        existing = best.get(candidate.locator)
        if existing is None or candidate.score > existing.score:
            best[candidate.locator] = candidate
    return list(best.values())


def rank_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    ranked = list(candidates)
    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked
