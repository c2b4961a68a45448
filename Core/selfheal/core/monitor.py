from __future__ import annotations

import asyncio
import logging
from typing import Callable

from selfheal.core.exceptions import MonitorStateError, ProcessLaunchError
from selfheal.core.line_grammar import LineGrammar
from selfheal.core.metadata import EventKind, MonitorEvent, MonitorState
from selfheal.core.runner import TestCommand

log = logging.getLogger(__name__)

EventCallback = Callable[[MonitorEvent], None]

READ_CHUNK_BYTES = 64 * 1024


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


class ExecutionMonitor:
    """Runs the test command and streams its output as typed events.

    One process per instance. A pump task moves completed lines from the
    child's merged stdout/stderr into a queue; a single dispatcher feeds
    them through the line grammar so events leave in line order.
    """

    def __init__(self, command: TestCommand, grammar_factory: Callable[[], LineGrammar] = LineGrammar) -> None:
        self.command = command
        self.grammar_factory = grammar_factory
        self.state = MonitorState.IDLE
        self.exit_code: int | None = None
        self.events: list[MonitorEvent] = []
        self._subscribers: list[EventCallback] = []
        self._lines: list[str] = []
        self._process: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task] = []
        self._done = asyncio.Event()
        self._grammar = grammar_factory()

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def output(self) -> str:
        return "\n".join(self._lines)

    @property
    def current_test(self) -> tuple[str, str] | None:
        return self._grammar.current_test

    async def start(self, test_filter: str | None = None) -> None:
        if self.state is MonitorState.RUNNING:
            raise MonitorStateError("A test run is already in progress; stop it first")
        self._reset()
        try:
            self._process = await self.command.spawn(test_filter)
        except ProcessLaunchError as exc:
            self.state = MonitorState.ERRORED
            self._publish(MonitorEvent(EventKind.ERROR, message=str(exc)))
            self._done.set()
            log.error("Test execution could not start: %s", exc)
            raise
        self.state = MonitorState.RUNNING
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._pump(self._process, queue)),
            asyncio.create_task(self._dispatch(self._process, queue)),
        ]

    def stop(self) -> None:
        if self.state is not MonitorState.RUNNING or self._process is None:
            return
        self.state = MonitorState.STOPPED
        try:
            self._process.kill()
        except ProcessLookupError:
            log.debug("Process %s already exited", self._process.pid)
        log.info("Stopped test execution monitor")

    async def wait_for_completion(self) -> int | None:
        if self.state is MonitorState.IDLE:
            return None
        await self._done.wait()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        return self.exit_code

    def _reset(self) -> None:
        self.exit_code = None
        self.events = []
        self._lines = []
        self._tasks = []
        self._done = asyncio.Event()
        self._grammar = self.grammar_factory()

    async def _pump(self, process: asyncio.subprocess.Process, queue: asyncio.Queue[str | None]) -> None:
        assert process.stdout is not None
        pending = b""
        try:
            while True:
                chunk = await process.stdout.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                *lines, pending = (pending + chunk).split(b"\n")
                for raw in lines:
                    await queue.put(_decode(raw))
            if pending:
                await queue.put(_decode(pending))
        finally:
            await queue.put(None)

    async def _dispatch(self, process: asyncio.subprocess.Process, queue: asyncio.Queue[str | None]) -> None:
        try:
            while True:
                line = await queue.get()
                if line is None:
                    break
                if self.state is not MonitorState.RUNNING:
                    continue
                self._lines.append(line)
                for event in self._grammar.feed(line):
                    self._publish(event)
            exit_code = await process.wait()
            if self.state is MonitorState.RUNNING:
                self.state = MonitorState.COMPLETED
                self.exit_code = exit_code
                self._publish(MonitorEvent(EventKind.COMPLETED, exit_code=exit_code))
                log.info("Test execution completed with code %s", exit_code)
        finally:
            self._done.set()

    def _publish(self, event: MonitorEvent) -> None:
        self.events.append(event)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                log.exception("Event subscriber failed for %s", event.kind.value)
