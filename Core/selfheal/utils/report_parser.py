from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ElementTree
from pathlib import Path

from selfheal.core.classifier import classify
from selfheal.core.metadata import FailurePattern, FailureRecord, RunSummary

log = logging.getLogger(__name__)

SUMMARY_PATTERN = re.compile(r"Tests run:\s*(\d+),\s*Failures:\s*(\d+),\s*Errors:\s*(\d+),\s*Skipped:\s*(\d+)")
TOTAL_TIME_PATTERN = re.compile(r"Total time:\s+(\d+:\d+\s+min|\d+(?:\.\d+)?\s+s)")
FAILURE_BLOCK_PATTERN = re.compile(
    r"(?P<test_class>(?:\w+\.)*\w+)\.(?P<test_method>\w+)\s*(?:--\s*)?Time elapsed:.*?<<<\s*(?:FAILURE|ERROR)!"
    r"(?P<details>[\s\S]*?)(?=\n\s*\n|\nTests run:|\Z)"
)
ERROR_TYPE_PATTERN = re.compile(r"^((?:\w+\.)*\w+(?:Exception|Error))\b:?")
PATTERN_LENGTH = 100


def parse_summary(output: str) -> RunSummary:
    """Reads the final surefire totals line and the build time."""

    matches = SUMMARY_PATTERN.findall(output)
    summary = RunSummary()
    if matches:
        total, failures, errors, skipped = (int(value) for value in matches[-1])
        summary.total = total
        summary.failed = failures + errors
        summary.skipped = skipped
        summary.passed = max(total - failures - errors - skipped, 0)
    time_match = TOTAL_TIME_PATTERN.search(output)
    if time_match:
        summary.execution_time = parse_execution_time(time_match.group(1))
    return summary


def parse_execution_time(text: str) -> float:
    minutes = re.match(r"(\d+):(\d+)", text)
    if "min" in text and minutes:
        return int(minutes.group(1)) * 60 + int(minutes.group(2))
    seconds = re.search(r"(\d+(?:\.\d+)?)", text)
    return float(seconds.group(1)) if seconds else 0.0


def extract_error_type(message: str) -> str:
    match = ERROR_TYPE_PATTERN.match(message.strip())
    return match.group(1) if match else "Unknown"


def extract_failures(output: str) -> list[FailureRecord]:
    """Builds failure records from the console's '<<< FAILURE!' blocks."""

    failures: list[FailureRecord] = []
    for match in FAILURE_BLOCK_PATTERN.finditer(output):
        details = match.group("details").strip()
        message = details.splitlines()[0].strip() if details else "Unknown error"
        failures.append(
            FailureRecord(
                test_class=match.group("test_class"),
                test_method=match.group("test_method"),
                error_type=extract_error_type(message),
                error_message=message,
                stack_trace=details,
                category=classify(message, details),
            )
        )
    return failures


def parse_surefire_reports(directory: str | Path) -> list[FailureRecord]:
    """Builds failure records from surefire XML reports."""

    report_dir = Path(directory)
    if not report_dir.is_dir():
        return []
    failures: list[FailureRecord] = []
    for path in sorted(report_dir.glob("*.xml")):
        try:
            root = ElementTree.parse(path).getroot()
        except ElementTree.ParseError as exc:
            log.warning("Skipping unreadable report %s: %s", path, exc)
            continue
        for testcase in root.iter("testcase"):
            problem = testcase.find("failure")
            if problem is None:
                problem = testcase.find("error")
            if problem is None:
                continue
            stack_trace = (problem.text or "").strip()
            message = problem.get("message") or (stack_trace.splitlines()[0] if stack_trace else "Unknown error")
            failures.append(
                FailureRecord(
                    test_class=testcase.get("classname", "Unknown"),
                    test_method=testcase.get("name", "Unknown"),
                    error_type=problem.get("type") or extract_error_type(message),
                    error_message=message,
                    stack_trace=stack_trace or None,
                    category=classify(message, stack_trace),
                )
            )
    return failures


def normalize_error_pattern(message: str) -> str:
    """Blanks out numbers, quoted strings and parenthesised details so similar errors group."""

    pattern = re.sub(r"\d+", "N", message)
    pattern = re.sub(r'"[^"]+"', '"..."', pattern)
    pattern = re.sub(r"\([^)]+\)", "(...)", pattern)
    return pattern[:PATTERN_LENGTH]


def group_failure_patterns(failures: list[FailureRecord]) -> list[FailurePattern]:
    groups: dict[tuple[str, str], FailurePattern] = {}
    for failure in failures:
        pattern = normalize_error_pattern(failure.error_message)
        group = groups.setdefault(
            (failure.category.value, pattern),
            FailurePattern(pattern=pattern, category=failure.category),
        )
        group.count += 1
        group.affected_tests.append(f"{failure.test_class}.{failure.test_method}")
    return sorted(groups.values(), key=lambda group: group.count, reverse=True)
