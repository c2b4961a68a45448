from __future__ import annotations

import json
import re

from selfheal.core.metadata import Locator, LocatorKind

# Names WebDriver uses for its lookup strategies in error payloads.
WEBDRIVER_METHODS = {
    "css selector": LocatorKind.CSS,
    "xpath": LocatorKind.XPATH,
    "id": LocatorKind.ID,
    "name": LocatorKind.NAME,
    "class name": LocatorKind.CLASS,
    "link text": LocatorKind.LINK_TEXT,
    "partial link text": LocatorKind.PARTIAL_LINK_TEXT,
}

PAYLOAD_PATTERN = re.compile(r"\{.*\}")
BY_TO_STRING_PATTERN = re.compile(r"By\.(?P<method>\w+):\s*(?P<value>.+)")
ID_CSS_PATTERN = re.compile(r"^#([\w-]+)$")
NAME_CSS_PATTERN = re.compile(r"""^\*?\[name=["']?([^"'\]]+)["']?\]$""")
CLASS_CSS_PATTERN = re.compile(r"^\.([\w-]+)$")

BY_TO_STRING_METHODS = {
    "id": LocatorKind.ID,
    "name": LocatorKind.NAME,
    "className": LocatorKind.CLASS,
    "cssSelector": LocatorKind.CSS,
    "xpath": LocatorKind.XPATH,
    "linkText": LocatorKind.LINK_TEXT,
    "partialLinkText": LocatorKind.PARTIAL_LINK_TEXT,
}


def infer_selector_type(selector: str) -> LocatorKind:
    stripped = selector.strip()
    if stripped.startswith("/") or stripped.startswith("("):
        return LocatorKind.XPATH
    return LocatorKind.CSS


def parse_locator_text(text: str) -> Locator | None:
    """Reads the locator out of a "no such element" message fragment.

    Accepts the WebDriver JSON payload ({"method":"css selector","selector":"#a"}),
    Java's By#toString form (By.id: email) or a bare selector.
    """

    stripped = text.strip()
    if not stripped:
        return None
    payload_match = PAYLOAD_PATTERN.search(stripped)
    if payload_match:
        try:
            payload = json.loads(payload_match.group(0))
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict) and "selector" in payload:
            method = str(payload.get("method", "")).lower()
            kind = WEBDRIVER_METHODS.get(method) or infer_selector_type(str(payload["selector"]))
            return Locator(kind, str(payload["selector"]))
    by_match = BY_TO_STRING_PATTERN.search(stripped)
    if by_match and by_match.group("method") in BY_TO_STRING_METHODS:
        return Locator(BY_TO_STRING_METHODS[by_match.group("method")], by_match.group("value").strip())
    selector = stripped.strip("'\"")
    return Locator(infer_selector_type(selector), selector)


def equivalent_locators(locator: Locator) -> list[Locator]:
    """Returns the locator plus the spellings WebDriver may have rewritten it from."""

    equivalents = [locator]
    if locator.kind is not LocatorKind.CSS:
        return equivalents
    for pattern, kind in (
        (ID_CSS_PATTERN, LocatorKind.ID),
        (NAME_CSS_PATTERN, LocatorKind.NAME),
        (CLASS_CSS_PATTERN, LocatorKind.CLASS),
    ):
        match = pattern.match(locator.value)
        if match:
            equivalents.append(Locator(kind, match.group(1)))
    return equivalents
