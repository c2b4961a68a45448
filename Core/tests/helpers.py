from __future__ import annotations

from typing import Callable
from urllib import error, request

import pytest

from selfheal.core.exceptions import ProbeError, ProcessLaunchError
from selfheal.core.metadata import CommandOutcome, Locator, ProbeResult
from selfheal.core.probe import LiveProbe


class FakeProbe(LiveProbe):
    """In-memory probe that resolves a fixed set of locators."""

    def __init__(self, resolvable=(), fail_on_navigate: bool = False) -> None:
        self.resolvable = set(resolvable)
        self.fail_on_navigate = fail_on_navigate
        self.opened = 0
        self.closed = 0
        self.navigations: list[str] = []
        self.located: list[tuple[Locator, int]] = []

    def open(self) -> None:
        self.opened += 1

    def close(self) -> None:
        self.closed += 1

    def navigate(self, url: str) -> None:
        if self.fail_on_navigate:
            raise ProbeError(f"Could not navigate to {url}")
        self.navigations.append(url)

    def locate(self, locator: Locator, timeout_ms: int) -> ProbeResult:
        self.located.append((locator, timeout_ms))
        if locator in self.resolvable:
            return ProbeResult(found=True, visible=True, enabled=True, tag_name="input", time_taken_ms=1.0)
        return ProbeResult(found=False, error=f"Element not found: {locator}", time_taken_ms=1.0)


class FakeCommand:
    """Stands in for TestCommand.execute with a scripted responder."""

    def __init__(self, respond: Callable[[str | None, bool], CommandOutcome]) -> None:
        self.respond = respond
        self.calls: list[tuple[str | None, bool]] = []

    async def execute(self, test_filter: str | None = None, retry: bool = False, timeout: float | None = None) -> CommandOutcome:
        self.calls.append((test_filter, retry))
        return self.respond(test_filter, retry)


def batch_unavailable(single_exit_codes: dict[str, int]) -> Callable[[str | None, bool], CommandOutcome]:
    """Fails to launch for comma-joined filters and runs single tests normally."""

    def respond(test_filter: str | None, retry: bool) -> CommandOutcome:
        if test_filter and "," in test_filter:
            raise ProcessLaunchError("Could not launch 'mvn': argument list too long")
        return CommandOutcome(exit_code=single_exit_codes.get(test_filter or "", 1), output="", duration=0.1)

    return respond


def require_reachable_base_url(base_url: str) -> None:
    try:
        with request.urlopen(base_url, timeout=2):
            return
    except (error.URLError, TimeoutError) as exc:
        pytest.skip(f"Target app is not reachable at {base_url}: {exc}")
