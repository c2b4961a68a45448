from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from selfheal.core.metadata import Locator, LocatorKind
from selfheal.utils.locators import equivalent_locators

log = logging.getLogger(__name__)

# Selector map files store each entry as {"type", "selector"} or {"kind", "value"}.
ENTRY_SHAPES = (("type", "selector"), ("kind", "value"))


def parse_selector_map(content: str, source: str | Path) -> dict[str, Any]:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"{source} does not contain a JSON object")
    return payload


def load_selector_map(path: str | Path) -> dict[str, Any]:
    return parse_selector_map(Path(path).read_text(encoding="utf-8"), path)


def dump_selector_map(selectors: dict[str, Any]) -> str:
    return json.dumps(selectors, indent=2) + "\n"


def entry_locator(entry: Any) -> Locator | None:
    if not isinstance(entry, dict):
        return None
    for kind_field, value_field in ENTRY_SHAPES:
        if kind_field in entry and value_field in entry:
            try:
                return Locator(LocatorKind(entry[kind_field]), str(entry[value_field]))
            except ValueError:
                return None
    return None


def render_entry(existing: Any, locator: Locator) -> dict[str, Any]:
    """Writes the new locator using the field names the entry already has."""

    kind_field, value_field = ENTRY_SHAPES[0]
    if isinstance(existing, dict):
        for shape in ENTRY_SHAPES:
            if shape[0] in existing or shape[1] in existing:
                kind_field, value_field = shape
                break
        updated = dict(existing)
    else:
        updated = {}
    updated[kind_field] = locator.kind.value
    updated[value_field] = locator.value
    return updated


class SelectorMapIndex:
    """Reverse lookup from a locator to the selector map entries holding it."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._entries: dict[Locator, list[tuple[Path, str]]] = {}

    def refresh(self) -> SelectorMapIndex:
        self._entries = {}
        if not self.root.is_dir():
            log.debug("Selector map directory %s does not exist", self.root)
            return self
        for path in sorted(self.root.rglob("*.json")):
            try:
                selectors = load_selector_map(path)
            except (OSError, ValueError) as exc:
                log.warning("Skipping unreadable selector map %s: %s", path, exc)
                continue
            for key, entry in selectors.items():
                locator = entry_locator(entry)
                if locator is not None:
                    self._entries.setdefault(locator, []).append((path, key))
        return self

    def lookup(self, locator: Locator) -> list[tuple[Path, str]]:
        # WebDriver reports By.id/By.name lookups as CSS, so try those spellings too.
        for candidate in equivalent_locators(locator):
            matches = self._entries.get(candidate)
            if matches:
                return list(matches)
        return []

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
