"""Runs resolved task trees on the asyncio event loop.

Leaves suspend at their own I/O; composites only wait on children. A
sequence stops at its first failing child. A parallel group lets every
child settle before reporting, and fails with a CompositeFailure when any
child failed.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from .core import PlanNode, TaskKind
from .errors import CompositeFailure, RunCancelled, TaskBodyFailure
from .logging import format_duration, get_logger
from .registry import Registry


log = get_logger("buildflow.executor")

_CALLBACK_NAMES = ("done", "cb", "callback")


class StepStatus(str, Enum):
    OK = "ok"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Outcome:
    task: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, task: str) -> "Outcome":
        return cls(task=task)

    @classmethod
    def failure(cls, task: str, error: BaseException) -> "Outcome":
        return cls(task=task, error=error)


@dataclass
class ExecutionContext:
    root: str
    watch: bool = False
    params: dict = field(default_factory=dict)
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class StepRecord:
    name: str
    status: StepStatus
    seconds: float = 0.0
    error: Optional[str] = None


@dataclass
class RunReport:
    root: str
    outcome: Outcome
    steps: List[StepRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "status": StepStatus.OK.value if self.outcome.ok else StepStatus.ERROR.value,
            "error": None if self.outcome.ok else str(self.outcome.error),
            "steps": [
                {**asdict(s), "status": s.status.value} for s in self.steps
            ],
        }


class Executor:
    def __init__(self, registry: Registry):
        self.registry = registry

    async def run(self, target: Any, ctx: Optional[ExecutionContext] = None) -> Outcome:
        report = await self.execute(target, ctx)
        return report.outcome

    async def execute(
        self, target: Any, ctx: Optional[ExecutionContext] = None
    ) -> RunReport:
        """Run `target` (a name, Task or PlanNode) and return the full report.

        Unresolvable references raise before any body is invoked.
        """
        plan = target if isinstance(target, PlanNode) else self.registry.plan(target)
        ctx = ctx or ExecutionContext(root=plan.name)
        steps: List[StepRecord] = []
        outcome = await self._run_node(plan, ctx, steps)
        return RunReport(root=plan.name, outcome=outcome, steps=steps)

    async def _run_node(
        self, node: PlanNode, ctx: ExecutionContext, steps: List[StepRecord]
    ) -> Outcome:
        if node.kind is TaskKind.LEAF:
            return await self._run_leaf(node, ctx, steps)
        if node.kind is TaskKind.SEQUENCE:
            for child in node.children:
                outcome = await self._run_node(child, ctx, steps)
                if not outcome.ok:
                    return Outcome.failure(node.name, outcome.error)
            return Outcome.success(node.name)

        failures: List[BaseException] = []

        async def settle(child: PlanNode) -> Outcome:
            outcome = await self._run_node(child, ctx, steps)
            if not outcome.ok:
                failures.append(outcome.error)
            return outcome

        await asyncio.gather(*(settle(c) for c in node.children))
        if failures:
            return Outcome.failure(node.name, CompositeFailure(node.name, failures))
        return Outcome.success(node.name)

    async def _run_leaf(
        self, node: PlanNode, ctx: ExecutionContext, steps: List[StepRecord]
    ) -> Outcome:
        if ctx.cancelled:
            steps.append(StepRecord(name=node.name, status=StepStatus.SKIPPED))
            return Outcome.failure(node.name, RunCancelled(f"Run cancelled before '{node.name}'"))

        task_log = get_logger(f"buildflow.task.{node.name}")
        task_log.info("Starting '%s'...", node.name)
        started = time.perf_counter()
        try:
            await _invoke_body(node, ctx)
        except TaskBodyFailure as e:
            error: Optional[BaseException] = e
        except Exception as e:  # noqa: BLE001
            error = TaskBodyFailure(node.name, e)
            error.__cause__ = e
        else:
            error = None
        elapsed = time.perf_counter() - started

        if error is None:
            task_log.info("Finished '%s' after %s", node.name, format_duration(elapsed))
            steps.append(StepRecord(name=node.name, status=StepStatus.OK, seconds=elapsed))
            return Outcome.success(node.name)

        task_log.error(
            "'%s' errored after %s: %s",
            node.name,
            format_duration(elapsed),
            error,
            exc_info=error.__cause__ or error,
        )
        steps.append(
            StepRecord(name=node.name, status=StepStatus.ERROR, seconds=elapsed, error=str(error))
        )
        return Outcome.failure(node.name, error)


def _body_args(fn: Callable[..., Any]) -> tuple[bool, int]:
    """Return (takes_callback, positional_count) for a leaf body."""
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return False, 0
    names = [
        p.name
        for p in sig.parameters.values()
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD) and p.default is p.empty
    ]
    takes_callback = bool(names) and names[-1] in _CALLBACK_NAMES
    return takes_callback, min(len(names), 2)


async def _invoke_body(node: PlanNode, ctx: ExecutionContext) -> None:
    """Call a leaf body and wait for its single completion signal.

    Bodies may return normally, raise, return an awaitable, or take a
    `done(err=None)` callback. An exception or any truthy error value fails
    the task.
    """
    fn = node.fn
    if fn is None:
        raise TaskBodyFailure(node.name, "task has no body")

    takes_callback, count = _body_args(fn)
    loop = asyncio.get_running_loop()
    signal: asyncio.Future = loop.create_future()

    def settle(err: object) -> None:
        if signal.done():
            log.warning("'%s' signalled completion more than once", node.name)
            return
        signal.set_result(err)

    def done(err: object = None) -> None:
        loop.call_soon_threadsafe(settle, err)

    if takes_callback:
        args: tuple = (done,) if count == 1 else (ctx, done)
    else:
        args = () if count == 0 else (ctx,)

    result = fn(*args)
    if inspect.isawaitable(result):
        await result
    if not takes_callback:
        return
    err = await signal
    if isinstance(err, BaseException):
        raise TaskBodyFailure(node.name, err) from err
    # Falsy values such as a zero exit code count as success
    if err:
        raise TaskBodyFailure(node.name, err)
