from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from selfheal.config.schema import PipelineConfig
from selfheal.core.finder import SelectorFinder
from selfheal.core.line_grammar import SELECTOR_PATTERN
from selfheal.core.metadata import (
    EventKind,
    FailureCategory,
    FailureRecord,
    FixSuggestion,
    HealAttempt,
    HealingReport,
    Locator,
    MonitorEvent,
    PatchResult,
    SelectorMapEdit,
    WaitTimeEdit,
)
from selfheal.core.monitor import ExecutionMonitor
from selfheal.core.patcher import PatchApplier
from selfheal.core.probe import LiveProbe, SeleniumProbe
from selfheal.core.retry import RetryOrchestrator, split_test_id
from selfheal.core.runner import TestCommand
from selfheal.core.selector_map import SelectorMapIndex
from selfheal.logging.audit import PatchAuditLogger
from selfheal.logging.backups import BackupStore
from selfheal.utils.fix_analyzer import analyze_failures
from selfheal.utils.locators import parse_locator_text
from selfheal.utils.report_parser import group_failure_patterns

log = logging.getLogger(__name__)


class HealingPipeline:
    """Runs the suite, repairs broken locators and re-runs the affected tests."""

    def __init__(
        self,
        config: PipelineConfig,
        monitor: ExecutionMonitor,
        finder: SelectorFinder,
        probe_factory: Callable[[], LiveProbe],
        patcher: PatchApplier,
        retry: RetryOrchestrator,
        selector_index: SelectorMapIndex,
        audit_logger: PatchAuditLogger | None = None,
    ) -> None:
        self.config = config
        self.monitor = monitor
        self.finder = finder
        self.probe_factory = probe_factory
        self.patcher = patcher
        self.retry = retry
        self.selector_index = selector_index
        self.audit_logger = audit_logger

    async def run(self, test_filter: str | None = None) -> HealingReport:
        failures: list[FailureRecord] = []
        broken: dict[Locator, list[str]] = {}

        def note_broken(selector_text: str, test_class: str | None, test_method: str | None) -> None:
            locator = parse_locator_text(selector_text)
            if locator is None:
                return
            test_ids = broken.setdefault(locator, [])
            identifier = f"{test_class}#{test_method}"
            if identifier not in test_ids:
                test_ids.append(identifier)

        def collect(event: MonitorEvent) -> None:
            if event.kind is EventKind.TEST_FAILED and event.failure is not None:
                failures.append(event.failure)
                if event.failure.category is FailureCategory.SELECTOR:
                    match = SELECTOR_PATTERN.search(event.failure.error_message)
                    if match:
                        note_broken(match.group("selector"), event.test_class, event.test_method)
            elif event.kind is EventKind.SELECTOR_NOT_FOUND and event.selector:
                note_broken(event.selector, event.test_class, event.test_method)

        unsubscribe = self.monitor.subscribe(collect)
        try:
            await self.monitor.start(test_filter)
            exit_code = await self.monitor.wait_for_completion()
        finally:
            unsubscribe()

        for failure in failures:
            log.info("%s failed: %s (%s)", failure.test_id, failure.category.value, failure.error_type)

        patterns = group_failure_patterns(failures)
        suggestions = analyze_failures(failures)
        wait_patches = self.apply_wait_fixes(suggestions)

        self.selector_index.refresh()
        log.info("Indexed %s selector map entries", len(self.selector_index))
        attempts = []
        for locator, test_ids in broken.items():
            attempts.append(await self.heal_locator(locator, test_ids))

        retry_results = await self.retry.retry_all_queued()
        return HealingReport(
            exit_code=exit_code,
            failures=failures,
            attempts=attempts,
            retry_results=retry_results,
            remaining_queue=self.retry.queue,
            patterns=patterns,
            suggestions=suggestions,
            wait_patches=wait_patches,
        )

    async def heal_locator(self, locator: Locator, test_ids: list[str]) -> HealAttempt:
        attempt = HealAttempt(test_ids=list(test_ids), broken_locator=locator)
        targets = self.selector_index.lookup(locator)
        if not targets:
            attempt.skipped_reason = f"No selector map entry holds {locator}"
            log.warning(attempt.skipped_reason)
            return attempt

        candidate = await asyncio.to_thread(
            self.finder.find_best_selector,
            locator,
            self.probe_factory(),
            self.config.probe.base_url,
        )
        attempt.candidate = candidate
        if candidate is None:
            attempt.skipped_reason = "No working selector found"
            return attempt
        if candidate.locator == locator:
            attempt.skipped_reason = "Current selector works"
            return attempt

        for file_path, key in targets:
            result = self.patcher.apply(SelectorMapEdit(file=Path(file_path), key=key, new_locator=candidate.locator))
            attempt.patches.append(result)
            if self.audit_logger is not None:
                self.audit_logger.write(result, key=key, old_locator=locator, new_locator=candidate.locator)

        if attempt.healed:
            for identifier in test_ids:
                self.retry.enqueue(*split_test_id(identifier))
        return attempt

    def apply_wait_fixes(self, suggestions: list[FixSuggestion]) -> list[PatchResult]:
        """Raises explicit waits in the configured files for timed-out tests.

        Each distinct current wait is bumped once per file, longest first so a
        raised value is never raised again. Tests are queued for retry when at
        least one file held their wait.
        """

        by_wait: dict[tuple[int, int], list[str]] = {}
        for suggestion in suggestions:
            if suggestion.category is FailureCategory.TIMEOUT and suggestion.current_wait_seconds is not None:
                key = (suggestion.current_wait_seconds, suggestion.suggested_wait_seconds)
                by_wait.setdefault(key, []).append(suggestion.test_id)
        if not by_wait or not self.config.patch.wait_time_files:
            return []

        results: list[PatchResult] = []
        for (current, suggested), test_ids in sorted(by_wait.items(), reverse=True):
            patched = [
                self.patcher.apply(
                    WaitTimeEdit(file=self.config.resolve(name), current_seconds=current, new_seconds=suggested)
                )
                for name in self.config.patch.wait_time_files
            ]
            results.extend(patched)
            if self.audit_logger is not None:
                for result in patched:
                    self.audit_logger.write(result, key=f"wait:{current}s")
            if any(result.success for result in patched):
                for identifier in dict.fromkeys(test_ids):
                    self.retry.enqueue(*split_test_id(identifier))
            else:
                log.warning("No configured file waits %ss; %s left for manual review", current, ", ".join(test_ids))
        return results

    def prune_backups(self) -> int:
        return self.patcher.prune(self.config.patch.keep_last)


def build_pipeline(config: PipelineConfig) -> HealingPipeline:
    """Wires the default Selenium-backed pipeline from configuration."""

    command = TestCommand(config.runner)
    return HealingPipeline(
        config=config,
        monitor=ExecutionMonitor(command),
        finder=SelectorFinder(
            probe_timeout_ms=config.probe.probe_timeout_ms,
            candidate_timeout_ms=config.probe.candidate_timeout_ms,
        ),
        probe_factory=lambda: SeleniumProbe(config.probe),
        patcher=PatchApplier(BackupStore(config.resolve(config.patch.backup_root))),
        retry=RetryOrchestrator(command),
        selector_index=SelectorMapIndex(config.resolve(config.patch.selector_map_dir)),
        audit_logger=PatchAuditLogger(config.resolve(config.patch.audit_root)),
    )
