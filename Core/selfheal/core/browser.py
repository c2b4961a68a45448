from __future__ import annotations

import logging

from selenium import webdriver
from selenium.webdriver import ChromeOptions, FirefoxOptions

from selfheal.config.schema import ProbeConfig

log = logging.getLogger(__name__)


def _chrome_options(config: ProbeConfig) -> ChromeOptions:
    options = ChromeOptions()
    if config.headless:
        options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument(f"--window-size={config.window_width},{config.window_height}")
    return options


def _firefox_options(config: ProbeConfig) -> FirefoxOptions:
    options = FirefoxOptions()
    if config.headless:
        options.add_argument("-headless")
    options.add_argument(f"--width={config.window_width}")
    options.add_argument(f"--height={config.window_height}")
    return options


OPTION_BUILDERS = {"chrome": _chrome_options, "firefox": _firefox_options}
DRIVERS = {"chrome": webdriver.Chrome, "firefox": webdriver.Firefox}


class BrowserSession:
    """Starts the WebDriver a live probe inspects the application with.

    Drivers come from Selenium Manager. Element lookups poll explicitly, so
    the implicit wait is always zero.
    """

    def __init__(self, config: ProbeConfig) -> None:
        self.config = config

    def options(self) -> ChromeOptions | FirefoxOptions:
        options = OPTION_BUILDERS[self.config.browser](self.config)
        options.page_load_strategy = self.config.page_load_strategy
        return options

    def start(self):
        driver = DRIVERS[self.config.browser](options=self.options())
        driver.set_page_load_timeout(self.config.page_load_timeout_seconds)
        driver.implicitly_wait(0)
        log.info(
            "Started %s session (headless=%s, page load strategy %s)",
            self.config.browser,
            self.config.headless,
            self.config.page_load_strategy,
        )
        return driver
