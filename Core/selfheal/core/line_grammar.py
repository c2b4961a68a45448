from __future__ import annotations

import re
from typing import Callable

from selfheal.core.classifier import classify
from selfheal.core.metadata import EventKind, FailureRecord, MonitorEvent

_CLASS = r"(?P<test_class>(?:[\w$]+\.)*[\w$]+)"
_METHOD = r"(?P<test_method>[\w$]+)"

CLASS_STARTED_PATTERN = re.compile(r"\bRunning\s+(?P<test_class>(?:[\w$]+\.)*[A-Z][\w$]*)\s*$")
TEST_STARTED_PATTERN = re.compile(rf"Test started:\s*{_CLASS}\.{_METHOD}")
TEST_PASSED_PATTERN = re.compile(rf"Test passed:\s*{_CLASS}\.{_METHOD}")
TEST_FAILED_PATTERN = re.compile(rf"Test failed:\s*{_CLASS}\.{_METHOD}.*?Error:\s*(?P<message>.+)")
TEST_SKIPPED_PATTERN = re.compile(rf"Test skipped:\s*{_CLASS}\.{_METHOD}")
SELECTOR_PATTERN = re.compile(r"Unable to locate element:\s*(?P<selector>.+)")
EXCEPTION_NAME_PATTERN = re.compile(r"([A-Z]\w+(?:Exception|Error))")


def extract_error_type(message: str) -> str:
    match = EXCEPTION_NAME_PATTERN.search(message)
    return match.group(1) if match else "Unknown"


class LineGrammar:
    """Turns completed output lines into monitor events.

    Each line is checked against every rule in a fixed order and yields one
    event per rule that matches. Rules that carry no test name of their own
    (selector, timeout, stale element) are attributed to the most recently
    started test and are dropped when no test has started yet.
    """

    def __init__(self) -> None:
        self.current_test: tuple[str, str] | None = None
        self._rules: list[Callable[[str], MonitorEvent | None]] = [
            self._class_started,
            self._test_started,
            self._test_passed,
            self._test_failed,
            self._test_skipped,
            self._selector_not_found,
            self._timeout,
            self._stale_element,
        ]

    def feed(self, line: str) -> list[MonitorEvent]:
        line = line.rstrip("\r\n")
        if not line.strip():
            return []
        events: list[MonitorEvent] = []
        for rule in self._rules:
            event = rule(line)
            if event is not None:
                events.append(event)
        return events

    def reset(self) -> None:
        self.current_test = None

    def _class_started(self, line: str) -> MonitorEvent | None:
        match = CLASS_STARTED_PATTERN.search(line)
        if not match:
            return None
        return MonitorEvent(EventKind.CLASS_STARTED, test_class=match.group("test_class"))

    def _test_started(self, line: str) -> MonitorEvent | None:
        match = TEST_STARTED_PATTERN.search(line)
        if not match:
            return None
        self.current_test = (match.group("test_class"), match.group("test_method"))
        return MonitorEvent(EventKind.TEST_STARTED, *self.current_test)

    def _test_passed(self, line: str) -> MonitorEvent | None:
        match = TEST_PASSED_PATTERN.search(line)
        if not match:
            return None
        return MonitorEvent(EventKind.TEST_PASSED, match.group("test_class"), match.group("test_method"))

    def _test_failed(self, line: str) -> MonitorEvent | None:
        match = TEST_FAILED_PATTERN.search(line)
        if not match:
            return None
        message = match.group("message").strip()
        failure = FailureRecord(
            test_class=match.group("test_class"),
            test_method=match.group("test_method"),
            error_type=extract_error_type(message),
            error_message=message,
            category=classify(message),
        )
        return MonitorEvent(
            EventKind.TEST_FAILED,
            failure.test_class,
            failure.test_method,
            failure=failure,
            message=message,
        )

    def _test_skipped(self, line: str) -> MonitorEvent | None:
        match = TEST_SKIPPED_PATTERN.search(line)
        if not match:
            return None
        return MonitorEvent(EventKind.TEST_SKIPPED, match.group("test_class"), match.group("test_method"))

    def _selector_not_found(self, line: str) -> MonitorEvent | None:
        if self.current_test is None or "NoSuchElementException" not in line:
            return None
        match = SELECTOR_PATTERN.search(line)
        if not match:
            return None
        return MonitorEvent(
            EventKind.SELECTOR_NOT_FOUND,
            *self.current_test,
            selector=match.group("selector").strip(),
            message=line.strip(),
        )

    def _timeout(self, line: str) -> MonitorEvent | None:
        if self.current_test is None or "TimeoutException" not in line:
            return None
        return MonitorEvent(EventKind.TIMEOUT, *self.current_test, message=line.strip())

    def _stale_element(self, line: str) -> MonitorEvent | None:
        if self.current_test is None or "StaleElementReferenceException" not in line:
            return None
        return MonitorEvent(EventKind.STALE_ELEMENT, *self.current_test, message=line.strip())
