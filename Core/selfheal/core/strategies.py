from __future__ import annotations

import re
from abc import ABC, abstractmethod

from selfheal.core.metadata import Candidate, Locator, LocatorKind
from selfheal.utils.scoring import assess_stability

ID_FRAGMENT = re.compile(r"#([\w-]+)")
CLASS_FRAGMENT = re.compile(r"\.([\w-]+)")
LEADING_TAG = re.compile(r"^([a-z]+)")
NAME_ATTRIBUTE = re.compile(r"""\[name=["']?([^"'\]]+)["']?\]""")
TYPE_ATTRIBUTE = re.compile(r"""\[type=["']?([^"'\]]+)["']?\]""")
NTH_CHILD = re.compile(r":nth-child\([^)]*\)")


def _candidate(kind: LocatorKind, value: str, score: float, rationale: str) -> Candidate:
    locator = Locator(kind, value)
    return Candidate(locator=locator, score=score, stability=assess_stability(locator), rationale=rationale)


class CandidateStrategy(ABC):
    """Proposes replacement locators for one that no longer resolves."""

    name = "strategy"

    @abstractmethod
    def propose(self, current: Locator) -> list[Candidate]:
        raise NotImplementedError


class StructuralExtraction(CandidateStrategy):
    """Pulls id, class and attribute fragments out of a CSS selector."""

    name = "structural"

    def propose(self, current: Locator) -> list[Candidate]:
        if current.kind is not LocatorKind.CSS:
            return []
        value = current.value
        candidates: list[Candidate] = []
        id_match = ID_FRAGMENT.search(value)
        if id_match:
            candidates.append(_candidate(LocatorKind.ID, id_match.group(1), 95, "ID selector is most stable"))
        class_match = CLASS_FRAGMENT.search(value)
        if class_match:
            candidates.append(_candidate(LocatorKind.CSS, f".{class_match.group(1)}", 70, "Simple class selector"))
        tag_match = LEADING_TAG.match(value)
        if tag_match:
            tag = tag_match.group(1)
            name_match = NAME_ATTRIBUTE.search(value)
            if name_match:
                name = name_match.group(1)
                candidates.append(_candidate(LocatorKind.NAME, name, 90, "Name attribute is stable"))
                candidates.append(_candidate(LocatorKind.CSS, f'{tag}[name="{name}"]', 88, "Tag with name attribute"))
            type_match = TYPE_ATTRIBUTE.search(value)
            if type_match:
                candidates.append(
                    _candidate(LocatorKind.CSS, f'{tag}[type="{type_match.group(1)}"]', 75, "Tag with type attribute")
                )
        return candidates


# Fixed table of form-field roles: (hint words, proposals).
DOMAIN_PATTERNS: tuple[tuple[tuple[str, ...], tuple[tuple[LocatorKind, str, float, str], ...]], ...] = (
    (
        ("email",),
        (
            (LocatorKind.ID, "Email", 93, "Email input by ID"),
            (LocatorKind.NAME, "Email", 92, "Common email field name"),
            (LocatorKind.CSS, 'input[name="Email"]', 91, "Email input by name"),
            (LocatorKind.CSS, 'input[type="email"]', 85, "Email input by type"),
        ),
    ),
    (
        ("password",),
        (
            (LocatorKind.NAME, "Password", 92, "Common password field name"),
            (LocatorKind.CSS, 'input[type="password"]', 90, "Password input by type"),
        ),
    ),
    (
        ("button", "submit"),
        (
            (LocatorKind.CSS, 'button[type="submit"]', 85, "Submit button"),
            (LocatorKind.CSS, 'input[type="submit"]', 84, "Submit input"),
        ),
    ),
)


class DomainPatterns(CandidateStrategy):
    """Proposes the canonical locators for well-known form-field roles."""

    name = "domain"

    def propose(self, current: Locator) -> list[Candidate]:
        lowered = current.value.lower()
        candidates: list[Candidate] = []
        for hints, proposals in DOMAIN_PATTERNS:
            if any(hint in lowered for hint in hints):
                candidates.extend(_candidate(*proposal) for proposal in proposals)
        return candidates


class Simplification(CandidateStrategy):
    """Drops positional qualifiers and collapses deep child chains."""

    name = "simplification"

    def propose(self, current: Locator) -> list[Candidate]:
        if current.kind is not LocatorKind.CSS:
            return []
        value = current.value
        candidates: list[Candidate] = []
        without_nth = NTH_CHILD.sub("", value)
        if without_nth != value and without_nth.strip():
            candidates.append(_candidate(LocatorKind.CSS, without_nth, 60, "Removed brittle nth-child"))
        parts = value.split(" > ")
        if len(parts) > 2:
            simplified = " > ".join(parts[-2:])
            candidates.append(_candidate(LocatorKind.CSS, simplified, 65, "Simplified deep selector"))
        return candidates


def default_strategies() -> list[CandidateStrategy]:
    return [StructuralExtraction(), DomainPatterns(), Simplification()]
