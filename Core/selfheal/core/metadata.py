from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Union


def _now() -> datetime:
    return datetime.now(UTC)


class LocatorKind(str, Enum):
    ID = "id"
    NAME = "name"
    CLASS = "class"
    CSS = "css"
    XPATH = "xpath"
    LINK_TEXT = "linkText"
    PARTIAL_LINK_TEXT = "partialLinkText"


class FailureCategory(str, Enum):
    SELECTOR = "SELECTOR"
    TIMEOUT = "TIMEOUT"
    STALE_ELEMENT = "STALE_ELEMENT"
    ASSERTION = "ASSERTION"
    CONFIGURATION = "CONFIGURATION"
    NETWORK = "NETWORK"
    UNKNOWN = "UNKNOWN"


class Stability(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FixPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class MonitorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ERRORED = "errored"


class EventKind(str, Enum):
    CLASS_STARTED = "test-class-start"
    TEST_STARTED = "test-start"
    TEST_PASSED = "test-pass"
    TEST_FAILED = "test-fail"
    TEST_SKIPPED = "test-skip"
    SELECTOR_NOT_FOUND = "selector-not-found"
    TIMEOUT = "timeout-error"
    STALE_ELEMENT = "stale-element"
    COMPLETED = "complete"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Locator:
    kind: LocatorKind
    value: str

    def __str__(self) -> str:
        return f"{self.kind.value}={self.value}"


@dataclass(frozen=True, slots=True)
class FailureRecord:
    test_class: str
    test_method: str
    error_type: str
    error_message: str
    stack_trace: str | None = None
    timestamp: datetime = field(default_factory=_now)
    category: FailureCategory = FailureCategory.UNKNOWN

    @property
    def test_id(self) -> str:
        return f"{self.test_class}#{self.test_method}"


@dataclass(slots=True)
class FailurePattern:
    pattern: str
    category: FailureCategory
    count: int = 0
    affected_tests: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FixSuggestion:
    test_id: str
    category: FailureCategory
    issue: str
    suggested_fix: str
    priority: FixPriority
    auto_fixable: bool
    current_wait_seconds: int | None = None
    suggested_wait_seconds: int | None = None


@dataclass(slots=True)
class ProbeResult:
    found: bool
    visible: bool | None = None
    enabled: bool | None = None
    text: str | None = None
    tag_name: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)
    time_taken_ms: float = 0.0
    error: str | None = None


@dataclass(slots=True)
class Candidate:
    locator: Locator
    score: float
    stability: Stability
    rationale: str
    probe_result: ProbeResult | None = None


@dataclass(frozen=True, slots=True)
class SelectorMapEdit:
    file: Path
    key: str
    new_locator: Locator


@dataclass(frozen=True, slots=True)
class SourceLocatorEdit:
    file: Path
    variable_name: str
    new_locator: Locator


@dataclass(frozen=True, slots=True)
class ConfigAttributeEdit:
    file: Path
    attribute: str
    new_value: str


@dataclass(frozen=True, slots=True)
class WaitTimeEdit:
    file: Path
    current_seconds: int
    new_seconds: int


PatchTarget = Union[SelectorMapEdit, SourceLocatorEdit, ConfigAttributeEdit, WaitTimeEdit]


@dataclass(frozen=True, slots=True)
class PatchResult:
    success: bool
    file_path: str
    description: str = ""
    backup_path: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class BackupRecord:
    original_path: Path
    backup_path: Path
    created_at: datetime


@dataclass(slots=True)
class MonitorEvent:
    kind: EventKind
    test_class: str | None = None
    test_method: str | None = None
    failure: FailureRecord | None = None
    selector: str | None = None
    message: str | None = None
    exit_code: int | None = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(slots=True)
class CommandOutcome:
    exit_code: int
    output: str
    duration: float
    timed_out: bool = False


@dataclass(slots=True)
class RetryResult:
    test_name: str
    passed: bool
    duration: float
    output: str = ""
    error: str | None = None


@dataclass(slots=True)
class RunSummary:
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    execution_time: float = 0.0


@dataclass(slots=True)
class HealAttempt:
    test_ids: list[str]
    broken_locator: Locator
    candidate: Candidate | None = None
    patches: list[PatchResult] = field(default_factory=list)
    skipped_reason: str | None = None

    @property
    def healed(self) -> bool:
        return bool(self.patches) and all(patch.success for patch in self.patches)


@dataclass(slots=True)
class HealingReport:
    exit_code: int | None
    failures: list[FailureRecord] = field(default_factory=list)
    attempts: list[HealAttempt] = field(default_factory=list)
    patterns: list[FailurePattern] = field(default_factory=list)
    suggestions: list[FixSuggestion] = field(default_factory=list)
    wait_patches: list[PatchResult] = field(default_factory=list)
    retry_results: list[RetryResult] = field(default_factory=list)
    remaining_queue: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "exit_code": self.exit_code,
            "failures": [
                {
                    "test": failure.test_id,
                    "category": failure.category.value,
                    "error_type": failure.error_type,
                    "message": failure.error_message,
                }
                for failure in self.failures
            ],
            "attempts": [
                {
                    "tests": attempt.test_ids,
                    "broken_locator": str(attempt.broken_locator),
                    "new_locator": str(attempt.candidate.locator) if attempt.candidate else None,
                    "healed": attempt.healed,
                    "skipped_reason": attempt.skipped_reason,
                }
                for attempt in self.attempts
            ],
            "patterns": [
                {
                    "pattern": pattern.pattern,
                    "category": pattern.category.value,
                    "count": pattern.count,
                    "tests": pattern.affected_tests,
                }
                for pattern in self.patterns
            ],
            "suggestions": [
                {
                    "test": suggestion.test_id,
                    "category": suggestion.category.value,
                    "issue": suggestion.issue,
                    "fix": suggestion.suggested_fix,
                    "priority": suggestion.priority.value,
                    "auto_fixable": suggestion.auto_fixable,
                }
                for suggestion in self.suggestions
            ],
            "wait_patches": [patch.description or patch.error for patch in self.wait_patches],
            "retried": len(self.retry_results),
            "passed": sum(1 for result in self.retry_results if result.passed),
            "remaining_queue": self.remaining_queue,
        }
