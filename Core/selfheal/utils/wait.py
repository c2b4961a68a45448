from __future__ import annotations

import time
from typing import Callable, TypeVar

T = TypeVar("T")


def poll_until(
    fetch: Callable[[], T],
    timeout_ms: int,
    interval_ms: int = 200,
    ignored: tuple[type[Exception], ...] = (),
) -> T | None:
    """Calls ``fetch`` until it returns something truthy or ``timeout_ms`` passes.

    An exception listed in ``ignored`` counts as an empty result for that
    round. The last result is returned either way, so callers test it.
    """

    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        try:
            result = fetch()
        except ignored:
            result = None
        remaining = deadline - time.monotonic()
        if result or remaining <= 0:
            return result
        time.sleep(min(interval_ms / 1000, remaining))
