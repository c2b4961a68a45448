from __future__ import annotations

import time

import pytest
from selenium.common.exceptions import StaleElementReferenceException

from selfheal.config.schema import ProbeConfig
from selfheal.core.browser import BrowserSession
from selfheal.utils.wait import poll_until


def test_chrome_options_follow_config():
    session = BrowserSession(ProbeConfig(window_width=1280, window_height=720))

    options = session.options()

    assert "--headless=new" in options.arguments
    assert "--window-size=1280,720" in options.arguments
    assert options.page_load_strategy == "eager"


def test_firefox_options_skip_headless_when_disabled():
    session = BrowserSession(ProbeConfig(browser="firefox", headless=False, page_load_strategy="normal"))

    options = session.options()

    assert "-headless" not in options.arguments
    assert "--width=1920" in options.arguments
    assert options.page_load_strategy == "normal"


def test_poll_until_returns_first_truthy_result():
    results = iter([[], [], ["element"]])

    assert poll_until(lambda: next(results), 2000, interval_ms=1) == ["element"]


def test_poll_until_treats_ignored_errors_as_empty():
    calls = []

    def fetch():
        calls.append(1)
        if len(calls) < 3:
            raise StaleElementReferenceException("detached")
        return ["element"]

    assert poll_until(fetch, 2000, interval_ms=1, ignored=(StaleElementReferenceException,)) == ["element"]
    assert len(calls) == 3


def test_poll_until_gives_up_at_deadline():
    started = time.monotonic()

    assert poll_until(lambda: [], 50, interval_ms=10) == []
    assert time.monotonic() - started < 1


def test_poll_until_propagates_other_errors():
    def fetch():
        raise ValueError("boom")

    with pytest.raises(ValueError):
        poll_until(fetch, 100, ignored=(StaleElementReferenceException,))
