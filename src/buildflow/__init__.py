"""Task registry, sequence/parallel composition, an asyncio executor and a
file watcher for build pipelines.
"""

from .core import Task, TaskKind, ByName, Inline, PlanNode, task, sequence, parallel
from .errors import BuildflowError, UnknownTask, CyclicReference, TaskBodyFailure, CompositeFailure, RunCancelled
from .executor import ExecutionContext, Executor, Outcome, RunReport, StepRecord
from .registry import Registry, discover_tasks
from .watch import BindingState, PollingWatcher, WatchBinding, WatchTrigger

__all__ = [
    "Task",
    "TaskKind",
    "ByName",
    "Inline",
    "PlanNode",
    "task",
    "sequence",
    "parallel",
    "BuildflowError",
    "UnknownTask",
    "CyclicReference",
    "TaskBodyFailure",
    "CompositeFailure",
    "RunCancelled",
    "ExecutionContext",
    "Executor",
    "Outcome",
    "RunReport",
    "StepRecord",
    "Registry",
    "discover_tasks",
    "BindingState",
    "PollingWatcher",
    "WatchBinding",
    "WatchTrigger",
]
