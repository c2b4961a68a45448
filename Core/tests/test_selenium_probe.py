from __future__ import annotations

import pytest
from selenium.common.exceptions import WebDriverException

from selfheal.config.schema import ProbeConfig
from selfheal.core.exceptions import ProbeError
from selfheal.core.finder import SelectorFinder
from selfheal.core.metadata import Locator, LocatorKind, Stability
from selfheal.core.probe import SeleniumProbe
from tests.helpers import require_reachable_base_url

LOGIN_URL = "https://demowebshop.tricentis.com/login"


@pytest.fixture()
def probe():
    config = ProbeConfig()
    require_reachable_base_url(LOGIN_URL)
    selenium_probe = SeleniumProbe(config)
    try:
        selenium_probe.open()
    except ProbeError as exc:
        pytest.skip(f"WebDriver is not available: {exc}")
    yield selenium_probe
    selenium_probe.close()


@pytest.mark.integration
def test_locate_reports_element_details(probe):
    probe.navigate(LOGIN_URL)

    found = probe.locate(Locator(LocatorKind.ID, "Email"), 5000)
    missing = probe.locate(Locator(LocatorKind.CSS, "#does-not-exist"), 500)

    assert found.found is True
    assert found.tag_name == "input"
    assert found.attributes["name"] == "Email"
    assert missing.found is False
    assert missing.error


@pytest.mark.integration
def test_finder_repairs_renamed_email_field(probe):
    broken = Locator(LocatorKind.CSS, 'input[name="EmailAddress"]')

    best = SelectorFinder().find_best_selector(broken, probe, LOGIN_URL)

    assert best is not None
    assert best.locator in {Locator(LocatorKind.ID, "Email"), Locator(LocatorKind.NAME, "Email")}
    assert best.stability is Stability.HIGH


class _DetachingElement:
    tag_name = "input"

    def get_attribute(self, name):
        raise WebDriverException("invalid session id")


class _StubDriver:
    def __init__(self, find_error: Exception | None = None) -> None:
        self.find_error = find_error
        self.quit_calls = 0

    def find_elements(self, by, value):
        if self.find_error is not None:
            raise self.find_error
        return [_DetachingElement()]

    def quit(self):
        self.quit_calls += 1


class _StubSession:
    def __init__(self, driver: _StubDriver) -> None:
        self.driver = driver

    def start(self):
        return self.driver


def test_locate_reports_session_failure_during_lookup():
    driver = _StubDriver(find_error=WebDriverException("invalid session id"))
    selenium_probe = SeleniumProbe(ProbeConfig(), session=_StubSession(driver))

    result = selenium_probe.locate(Locator(LocatorKind.NAME, "Email"), 100)
    selenium_probe.close()

    assert result.found is False
    assert result.error == "invalid session id"
    assert driver.quit_calls == 1


def test_locate_reports_session_failure_while_inspecting_element():
    selenium_probe = SeleniumProbe(ProbeConfig(), session=_StubSession(_StubDriver()))

    result = selenium_probe.locate(Locator(LocatorKind.NAME, "Email"), 100)

    assert result.found is True
    assert result.error == "invalid session id"
    assert result.attributes == {}
