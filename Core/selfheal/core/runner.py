from __future__ import annotations

import asyncio
import logging
import shlex
from time import monotonic

from selfheal.config.schema import RunnerConfig
from selfheal.core.exceptions import ProcessLaunchError
from selfheal.core.metadata import CommandOutcome

log = logging.getLogger(__name__)


class TestCommand:
    """Builds and launches the external test-run command."""

    __test__ = False

    def __init__(self, config: RunnerConfig) -> None:
        self.config = config

    def build_args(self, test_filter: str | None = None, retry: bool = False) -> list[str]:
        args = list(self.config.command)
        if test_filter:
            args.append(self.config.filter_argument.format(filter=test_filter))
        if retry:
            args.extend(self.config.retry_arguments)
        return args

    async def spawn(self, test_filter: str | None = None, retry: bool = False) -> asyncio.subprocess.Process:
        args = self.build_args(test_filter, retry=retry)
        log.info("Starting test execution: %s", shlex.join(args))
        try:
            return await asyncio.create_subprocess_exec(
                *args,
                cwd=self.config.working_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise ProcessLaunchError(f"Could not launch {args[0]!r}: {exc}") from exc

    async def execute(
        self,
        test_filter: str | None = None,
        retry: bool = False,
        timeout: float | None = None,
    ) -> CommandOutcome:
        started = monotonic()
        process = await self.spawn(test_filter, retry=retry)
        limit = timeout if timeout is not None else self.config.timeout_seconds
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=limit)
        except asyncio.TimeoutError:
            process.kill()
            stdout, _ = await process.communicate()
            log.warning("Test execution timed out after %ss", limit)
            return CommandOutcome(
                exit_code=-1,
                output=(stdout or b"").decode("utf-8", errors="replace"),
                duration=monotonic() - started,
                timed_out=True,
            )
        exit_code = process.returncode if process.returncode is not None else -1
        log.info("Test execution finished with exit code %s", exit_code)
        return CommandOutcome(
            exit_code=exit_code,
            output=(stdout or b"").decode("utf-8", errors="replace"),
            duration=monotonic() - started,
        )
