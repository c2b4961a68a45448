from __future__ import annotations

import logging
import re
from time import monotonic
from typing import Any, Iterable

from selfheal.core.exceptions import ProcessLaunchError
from selfheal.core.metadata import RetryResult
from selfheal.core.runner import TestCommand

log = logging.getLogger(__name__)


def make_test_id(test_class: str, test_method: str) -> str:
    return f"{test_class}#{test_method}"


def split_test_id(identifier: str) -> tuple[str, str]:
    test_class, _, test_method = identifier.partition("#")
    return test_class, test_method


def attribute_batch_results(output: str, test_ids: Iterable[str], duration: float = 0.0) -> list[RetryResult]:
    """Works out each queued test's outcome from one batched run's output.

    A test passes only when a pass marker is present and no failure marker
    follows it. Tests with no marker at all are reported as not passed.
    """

    results: list[RetryResult] = []
    for identifier in test_ids:
        test_class, test_method = split_test_id(identifier)
        dotted = rf"{re.escape(test_class)}\.{re.escape(test_method)}\b"
        pass_positions = [match.start() for match in re.finditer(rf"Test passed:\s*{dotted}", output)]
        failures = list(re.finditer(rf"Test failed:\s*{dotted}.*?Error:\s*(?P<error>.+)", output))
        last_failure = failures[-1].start() if failures else -1
        passed = bool(pass_positions) and pass_positions[-1] > last_failure
        error = None
        if failures and not passed:
            error = failures[-1].group("error").strip()
        elif not passed:
            error = "No result reported for test"
        results.append(RetryResult(test_name=identifier, passed=passed, duration=duration, error=error))
    return results


class RetryOrchestrator:
    """Owns the retry queue and re-runs queued tests after a fix."""

    def __init__(self, command: TestCommand) -> None:
        self.command = command
        self._queue: set[str] = set()

    @property
    def queue(self) -> list[str]:
        return sorted(self._queue)

    def enqueue(self, test_class: str, test_method: str) -> str:
        identifier = make_test_id(test_class, test_method)
        if identifier not in self._queue:
            self._queue.add(identifier)
            log.info("Added to retry queue: %s", identifier)
        return identifier

    def clear(self) -> int:
        cleared = len(self._queue)
        self._queue.clear()
        return cleared

    def stats(self) -> dict[str, Any]:
        return {"queue_size": len(self._queue), "tests": self.queue}

    async def retry_single(self, test_class: str, test_method: str) -> RetryResult:
        identifier = make_test_id(test_class, test_method)
        started = monotonic()
        log.info("Retrying test: %s", identifier)
        try:
            outcome = await self.command.execute(identifier, retry=True)
        except ProcessLaunchError as exc:
            return RetryResult(test_name=identifier, passed=False, duration=monotonic() - started, error=str(exc))
        passed = outcome.exit_code == 0
        return RetryResult(
            test_name=identifier,
            passed=passed,
            duration=outcome.duration,
            output=outcome.output,
            error=None if passed else "Test failed after retry",
        )

    async def retry_all_queued(self) -> list[RetryResult]:
        snapshot = self.queue
        if not snapshot:
            log.info("Retry queue is empty")
            return []

        log.info("Retrying %s queued tests", len(snapshot))
        try:
            outcome = await self.command.execute(",".join(snapshot), retry=True)
            results = attribute_batch_results(outcome.output, snapshot, outcome.duration)
        except ProcessLaunchError as exc:
            log.warning("Batch retry could not start (%s); retrying individually", exc)
            results = []
            for identifier in snapshot:
                results.append(await self.retry_single(*split_test_id(identifier)))

        for result in results:
            if result.passed:
                self._queue.discard(result.test_name)
        log.info(
            "Retry finished: %s passed, %s still queued",
            sum(1 for result in results if result.passed),
            len(self._queue),
        )
        return results
