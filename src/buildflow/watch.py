"""Re-run tasks when files matching a glob change.

Each binding moves Idle -> Pending -> Running -> Idle. Events that arrive
while Pending are absorbed into the pending run; events that arrive while
Running queue at most one re-run.
"""

from __future__ import annotations

import asyncio
from collections import deque
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

from .executor import ExecutionContext, Executor, Outcome
from .logging import get_logger
from .utils import expand_globs, matches, normalize_path, safe_stat


log = get_logger("buildflow.watch")


class BindingState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"


class WatchBinding:
    def __init__(
        self,
        pattern: str,
        task_name: str,
        runner: Callable[[], Awaitable[Outcome]],
        delay: float = 0.1,
        history_size: int = 20,
    ):
        self.pattern = pattern
        self.task_name = task_name
        self.delay = delay
        self.state = BindingState.IDLE
        # Most recent outcomes only
        self.history: Deque[Outcome] = deque(maxlen=history_size)
        self.runs = 0
        self._runner = runner
        self._rerun = False
        self._last_event = 0.0
        self._driver: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    def matches(self, path: str) -> bool:
        return matches(path, self.pattern)

    def notify(self, path: str) -> None:
        loop = asyncio.get_running_loop()
        log.debug("Change in %s for '%s' (%s)", path, self.task_name, self.state.value)
        self._last_event = loop.time()
        if self.state is BindingState.RUNNING:
            self._rerun = True
            return
        if self.state is BindingState.PENDING:
            return
        self.state = BindingState.PENDING
        self._idle.clear()
        self._driver = loop.create_task(self._drive())

    async def wait_idle(self) -> None:
        await self._idle.wait()

    async def _quiesce(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            remaining = self._last_event + self.delay - loop.time()
            if remaining <= 0:
                return
            await asyncio.sleep(remaining)

    async def _drive(self) -> None:
        try:
            while True:
                await self._quiesce()
                self.state = BindingState.RUNNING
                outcome = await self._runner()
                self.runs += 1
                self.history.append(outcome)
                if not outcome.ok:
                    log.error("Watched task '%s' failed: %s", self.task_name, outcome.error)
                if not self._rerun:
                    break
                self._rerun = False
                self.state = BindingState.PENDING
        finally:
            self.state = BindingState.IDLE
            self._idle.set()


class WatchTrigger:
    """Owns the watch bindings and feeds them change events."""

    def __init__(
        self,
        executor: Executor,
        params: Optional[dict] = None,
        delay: float = 0.1,
        history_size: int = 20,
    ):
        self.executor = executor
        self.params = params or {}
        self.delay = delay
        self.history_size = history_size
        self.bindings: List[WatchBinding] = []

    def bind(self, pattern: str, task_name: str) -> WatchBinding:
        # Unknown names fail here, at startup
        plan = self.executor.registry.plan(task_name)

        async def runner() -> Outcome:
            ctx = ExecutionContext(root=task_name, watch=True, params=self.params)
            return await self.executor.run(plan, ctx)

        binding = WatchBinding(
            pattern, task_name, runner, delay=self.delay, history_size=self.history_size
        )
        self.bindings.append(binding)
        log.info("Watching %s -> '%s'", pattern, task_name)
        return binding

    def dispatch(self, path: str) -> List[WatchBinding]:
        hit = [b for b in self.bindings if b.matches(path)]
        for binding in hit:
            binding.notify(path)
        return hit

    async def serve(
        self, events: Optional[AsyncIterable[str]] = None, interval: float = 0.5
    ) -> None:
        """Dispatch events until the source is exhausted (never, for polling)."""
        if events is None:
            events = PollingWatcher([b.pattern for b in self.bindings], interval=interval)
        async for path in events:
            self.dispatch(path)

    async def wait_idle(self) -> None:
        for binding in list(self.bindings):
            await binding.wait_idle()


class PollingWatcher:
    """Async iterator of paths whose size or mtime changed between polls."""

    def __init__(self, patterns: List[str], interval: float = 0.5):
        self.patterns = list(patterns)
        self.interval = interval

    def snapshot(self) -> Dict[str, Tuple]:
        return {normalize_path(p): safe_stat(p) for p in expand_globs(self.patterns)}

    def __aiter__(self) -> AsyncIterator[str]:
        return self._events()

    async def _events(self) -> AsyncIterator[str]:
        previous = await asyncio.to_thread(self.snapshot)
        while True:
            await asyncio.sleep(self.interval)
            current = await asyncio.to_thread(self.snapshot)
            for path in sorted(set(previous) | set(current)):
                if previous.get(path) != current.get(path):
                    yield path
            previous = current
