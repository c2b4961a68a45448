from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from time import monotonic

from selenium.common.exceptions import (
    InvalidSelectorException,
    StaleElementReferenceException,
    WebDriverException,
)
from selenium.webdriver.common.by import By

from selfheal.config.schema import ProbeConfig
from selfheal.core.browser import BrowserSession
from selfheal.core.exceptions import ProbeError
from selfheal.core.metadata import Locator, LocatorKind, ProbeResult
from selfheal.utils.wait import poll_until

log = logging.getLogger(__name__)

BY_KIND = {
    LocatorKind.ID: By.ID,
    LocatorKind.NAME: By.NAME,
    LocatorKind.CLASS: By.CLASS_NAME,
    LocatorKind.CSS: By.CSS_SELECTOR,
    LocatorKind.XPATH: By.XPATH,
    LocatorKind.LINK_TEXT: By.LINK_TEXT,
    LocatorKind.PARTIAL_LINK_TEXT: By.PARTIAL_LINK_TEXT,
}

COMMON_ATTRIBUTES = ("id", "class", "name", "type", "value", "placeholder", "href")


class LiveProbe(ABC):
    """Checks locators against a live page through one exclusive session."""

    def __enter__(self) -> LiveProbe:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @abstractmethod
    def open(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def navigate(self, url: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def locate(self, locator: Locator, timeout_ms: int) -> ProbeResult:
        raise NotImplementedError


class SeleniumProbe(LiveProbe):
    def __init__(self, config: ProbeConfig, session: BrowserSession | None = None) -> None:
        self.config = config
        self.session = session or BrowserSession(config)
        self.driver = None

    def open(self) -> None:
        if self.driver is not None:
            return
        try:
            self.driver = self.session.start()
        except WebDriverException as exc:
            raise ProbeError(f"WebDriver could not start for {self.config.browser}: {exc.msg}") from exc
        log.debug("Opened %s probe session", self.config.browser)

    def close(self) -> None:
        if self.driver is None:
            return
        driver, self.driver = self.driver, None
        try:
            driver.quit()
        except WebDriverException as exc:
            log.warning("WebDriver did not quit cleanly: %s", exc.msg)

    def navigate(self, url: str) -> None:
        self.open()
        try:
            self.driver.get(url)
        except WebDriverException as exc:
            raise ProbeError(f"Could not navigate to {url}: {exc.msg}") from exc
        log.info("Navigated to %s", url)

    def locate(self, locator: Locator, timeout_ms: int) -> ProbeResult:
        self.open()
        started = monotonic()
        by = BY_KIND[locator.kind]
        try:
            matches = poll_until(
                lambda: self.driver.find_elements(by, locator.value),
                timeout_ms,
                ignored=(StaleElementReferenceException,),
            )
        except InvalidSelectorException as exc:
            return ProbeResult(found=False, error=f"Invalid selector: {exc.msg}", time_taken_ms=_elapsed(started))
        except WebDriverException as exc:
            return ProbeResult(found=False, error=exc.msg or str(exc), time_taken_ms=_elapsed(started))
        if not matches:
            return ProbeResult(
                found=False,
                error=f"Element not found: {locator}",
                time_taken_ms=_elapsed(started),
            )
        element = matches[0]
        time_taken = _elapsed(started)
        try:
            attributes = {}
            for name in COMMON_ATTRIBUTES:
                value = element.get_attribute(name)
                if value:
                    attributes[name] = value
            return ProbeResult(
                found=True,
                visible=element.is_displayed(),
                enabled=element.is_enabled(),
                text=element.text,
                tag_name=element.tag_name,
                attributes=attributes,
                time_taken_ms=time_taken,
            )
        except StaleElementReferenceException:
            return ProbeResult(found=True, time_taken_ms=time_taken)
        except WebDriverException as exc:
            log.warning("Could not inspect element for %s: %s", locator, exc.msg)
            return ProbeResult(found=True, error=exc.msg or str(exc), time_taken_ms=time_taken)


def _elapsed(started: float) -> float:
    return round((monotonic() - started) * 1000, 1)
