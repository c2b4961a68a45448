from __future__ import annotations

import logging
from typing import Iterable

from selenium.common.exceptions import WebDriverException

from selfheal.core.exceptions import ProbeError
from selfheal.core.metadata import Candidate, Locator
from selfheal.core.probe import LiveProbe
from selfheal.core.strategies import CandidateStrategy, default_strategies
from selfheal.utils.scoring import assess_stability, dedupe_candidates, rank_candidates

log = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 5000
DEFAULT_CANDIDATE_TIMEOUT_MS = 3000


class SelectorFinder:
    """Finds a working replacement for a locator on a live page."""

    def __init__(
        self,
        strategies: Iterable[CandidateStrategy] | None = None,
        probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
        candidate_timeout_ms: int = DEFAULT_CANDIDATE_TIMEOUT_MS,
    ) -> None:
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.probe_timeout_ms = probe_timeout_ms
        self.candidate_timeout_ms = candidate_timeout_ms

    def find_best_selector(self, current: Locator, probe: LiveProbe, page_url: str | None = None) -> Candidate | None:
        try:
            with probe:
                if page_url:
                    probe.navigate(page_url)
                return self._search(current, probe)
        except ProbeError as exc:
            log.error("Selector search for %s aborted: %s", current, exc)
            return None
        except WebDriverException as exc:
            log.error("Browser failed during selector search for %s: %s", current, exc.msg)
            return None

    def generate_candidates(self, current: Locator) -> list[Candidate]:
        proposals: list[Candidate] = []
        for strategy in self.strategies:
            proposals.extend(strategy.propose(current))
        return dedupe_candidates(proposals, exclude=current)

    def _search(self, current: Locator, probe: LiveProbe) -> Candidate | None:
        current_result = probe.locate(current, self.probe_timeout_ms)
        if current_result.found:
            log.info("Current selector %s still resolves", current)
            return Candidate(
                locator=current,
                score=100,
                stability=assess_stability(current),
                rationale="Current selector works",
                probe_result=current_result,
            )

        validated: list[Candidate] = []
        for candidate in self.generate_candidates(current):
            result = probe.locate(candidate.locator, self.candidate_timeout_ms)
            if result.found:
                candidate.probe_result = result
                validated.append(candidate)
            else:
                log.debug("Candidate %s did not resolve", candidate.locator)

        if not validated:
            log.warning("No working selector found to replace %s", current)
            return None
        best = rank_candidates(validated)[0]
        log.info("Best replacement for %s is %s (score %s, %s)", current, best.locator, best.score, best.stability.value)
        return best
