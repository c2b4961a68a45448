from __future__ import annotations

import pytest

from selfheal.core.metadata import Locator, LocatorKind
from selfheal.core.selector_map import SelectorMapIndex, entry_locator, parse_selector_map, render_entry
from selfheal.utils.locators import equivalent_locators, infer_selector_type, parse_locator_text


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('{"method":"css selector","selector":"input[name=\\"Email\\"]"}', Locator(LocatorKind.CSS, 'input[name="Email"]')),
        ('{"method":"xpath","selector":"//button[@type=\'submit\']"}', Locator(LocatorKind.XPATH, "//button[@type='submit']")),
        ("By.id: Email", Locator(LocatorKind.ID, "Email")),
        ("By.cssSelector: .login-button", Locator(LocatorKind.CSS, ".login-button")),
        ("'(//a)[2]'", Locator(LocatorKind.XPATH, "(//a)[2]")),
        ("#Email", Locator(LocatorKind.CSS, "#Email")),
    ],
)
def test_parse_locator_text(text, expected):
    assert parse_locator_text(text) == expected


def test_parse_locator_text_ignores_blank():
    assert parse_locator_text("   ") is None
    assert infer_selector_type("//input") is LocatorKind.XPATH


def test_equivalent_locators_cover_webdriver_rewrites():
    assert equivalent_locators(Locator(LocatorKind.CSS, "#Email")) == [
        Locator(LocatorKind.CSS, "#Email"),
        Locator(LocatorKind.ID, "Email"),
    ]
    assert Locator(LocatorKind.NAME, "Email") in equivalent_locators(Locator(LocatorKind.CSS, '*[name="Email"]'))
    assert equivalent_locators(Locator(LocatorKind.ID, "Email")) == [Locator(LocatorKind.ID, "Email")]


def test_entry_helpers_handle_both_shapes():
    assert entry_locator({"type": "id", "selector": "Email"}) == Locator(LocatorKind.ID, "Email")
    assert entry_locator({"kind": "xpath", "value": "//a"}) == Locator(LocatorKind.XPATH, "//a")
    assert entry_locator({"type": "bogus", "selector": "x"}) is None
    assert entry_locator("css=#a") is None
    assert render_entry({"kind": "css", "value": "#a", "note": "x"}, Locator(LocatorKind.NAME, "a")) == {
        "kind": "name",
        "value": "a",
        "note": "x",
    }


def test_parse_selector_map_rejects_non_objects():
    with pytest.raises(ValueError):
        parse_selector_map("[1, 2]", "list.json")


def test_index_finds_entries_across_spellings(tmp_path, selector_map_file):
    (selector_map_file.parent / "nested").mkdir()
    (selector_map_file.parent / "nested" / "bad.json").write_text("oops", encoding="utf-8")
    index = SelectorMapIndex(selector_map_file.parent).refresh()

    assert len(index) == 3
    assert index.lookup(Locator(LocatorKind.CSS, 'input[name="Email"]')) == [(selector_map_file, "emailInput")]
    assert index.lookup(Locator(LocatorKind.CSS, "#Password")) == [(selector_map_file, "passwordInput")]
    assert index.lookup(Locator(LocatorKind.CSS, "#missing")) == []
    assert len(SelectorMapIndex(tmp_path / "absent").refresh()) == 0
