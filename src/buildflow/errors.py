"""Error taxonomy for task resolution and execution."""

from __future__ import annotations

import difflib
from typing import Iterable, List, Optional


class BuildflowError(Exception):
    """Base class for errors raised by the engine."""


class UnknownTask(BuildflowError, KeyError):
    """A task name could not be resolved in the registry."""

    def __init__(self, name: str, known: Iterable[str] = ()):
        self.name = name
        matches = difflib.get_close_matches(name, list(known), n=1, cutoff=0.75)
        self.suggestion: Optional[str] = matches[0] if matches else None
        message = f"Task not found: {name}"
        if self.suggestion:
            message += f" (did you mean '{self.suggestion}'?)"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class CyclicReference(BuildflowError):
    """A named task refers to itself through its own children."""

    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        super().__init__("Cycle detected in task graph: " + " -> ".join(self.chain))


class TaskBodyFailure(BuildflowError):
    """Error reported by a leaf task body."""

    def __init__(self, task: str, cause: object):
        self.task = task
        self.cause = cause
        if isinstance(cause, BaseException):
            detail = f"{type(cause).__name__}: {cause}"
        else:
            detail = f"signalled error {cause!r}"
        super().__init__(f"Task '{task}' failed: {detail}")


class CompositeFailure(BuildflowError):
    """One or more children of a parallel group failed.

    `errors` holds every child error in the order the children finished;
    `first` is the first of them.
    """

    def __init__(self, task: str, errors: List[BaseException]):
        if not errors:
            raise ValueError("CompositeFailure needs at least one error")
        self.task = task
        self.errors = list(errors)
        self.first = self.errors[0]
        others = len(self.errors) - 1
        message = f"'{task}' failed: {self.first}"
        if others:
            message += f" (and {others} more)"
        super().__init__(message)


class RunCancelled(BuildflowError):
    """The execution context was cancelled before a task started."""
