from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Tuple, Union

from .errors import CyclicReference


class TaskKind(str, Enum):
    LEAF = "leaf"
    SEQUENCE = "sequence"
    PARALLEL = "parallel"


@dataclass(frozen=True)
class ByName:
    name: str


@dataclass(frozen=True)
class Inline:
    task: "Task"


TaskRef = Union[ByName, Inline]


@dataclass(frozen=True)
class Task:
    kind: TaskKind
    name: Optional[str] = None
    fn: Optional[Callable[..., Any]] = None
    children: Tuple[TaskRef, ...] = ()
    description: str = ""

    @property
    def label(self) -> str:
        return self.name or f"<{self.kind.value}>"

    def named(self, name: str) -> "Task":
        return self if self.name == name else replace(self, name=name)


def task(name: Optional[str] = None, description: Optional[str] = None):
    """Decorator to declare a leaf task on a function.

    The function is returned unchanged; the task definition is attached as
    `_task_spec` so module discovery can register it. The body may take the
    execution context as its first argument and a `done` callback as its last.
    """

    def deco(fn: Callable[..., Any]):
        spec = leaf(fn, name=name or fn.__name__, description=description)
        setattr(fn, "_task_spec", spec)
        return fn

    return deco


def leaf(
    fn: Callable[..., Any], name: Optional[str] = None, description: Optional[str] = None
) -> Task:
    if not callable(fn):
        raise TypeError(f"Task body must be callable, got {type(fn).__name__}")
    if description is None:
        doc = (getattr(fn, "__doc__", None) or "").strip()
        description = doc.splitlines()[0] if doc else ""
    return Task(kind=TaskKind.LEAF, name=name, fn=fn, description=description)


def as_ref(obj: Any) -> TaskRef:
    """Normalize a name, task, decorated function or plain callable into a reference."""
    if isinstance(obj, (ByName, Inline)):
        return obj
    if isinstance(obj, str):
        if not obj:
            raise ValueError("Task name must not be empty")
        return ByName(obj)
    if isinstance(obj, Task):
        return Inline(obj)
    spec = getattr(obj, "_task_spec", None)
    if isinstance(spec, Task):
        return Inline(spec)
    if callable(obj):
        return Inline(leaf(obj))
    raise TypeError(f"Cannot use {obj!r} as a task reference")


def _composite(
    kind: TaskKind, refs: Tuple[Any, ...], name: Optional[str], description: str
) -> Task:
    if not refs:
        raise ValueError(f"{kind.value}() needs at least one task")
    children = tuple(as_ref(r) for r in refs)
    return Task(kind=kind, name=name, children=children, description=description)


def sequence(*refs: Any, name: Optional[str] = None, description: str = "") -> Task:
    """Children run one after the other; the first failure stops the rest."""
    return _composite(TaskKind.SEQUENCE, refs, name, description)


def parallel(*refs: Any, name: Optional[str] = None, description: str = "") -> Task:
    """Children start together and all of them run to completion."""
    return _composite(TaskKind.PARALLEL, refs, name, description)


@dataclass
class PlanNode:
    """A task with every reference resolved; the tree the executor walks."""

    name: str
    kind: TaskKind
    fn: Optional[Callable[..., Any]] = None
    children: List["PlanNode"] = field(default_factory=list)
    description: str = ""

    def walk(self) -> Iterator["PlanNode"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def leaves(self) -> List[str]:
        return [n.name for n in self.walk() if n.kind is TaskKind.LEAF]

    def render(self, indent: int = 0) -> List[str]:
        pad = "  " * indent
        if self.kind is TaskKind.LEAF:
            line = f"{pad}{self.name}"
        else:
            line = f"{pad}{self.name} [{self.kind.value}]"
        lines = [line]
        for child in self.children:
            lines.extend(child.render(indent + 1))
        return lines


def resolve_plan(
    ref: Any, lookup: Callable[[str], Task], _chain: Tuple[str, ...] = ()
) -> PlanNode:
    """Resolve a reference and all of its descendants into a PlanNode tree.

    Name lookups go through `lookup` (which raises UnknownTask); a name that
    reappears among its own descendants raises CyclicReference.
    """
    ref = as_ref(ref)
    if isinstance(ref, ByName):
        if ref.name in _chain:
            raise CyclicReference([*_chain, ref.name])
        definition = lookup(ref.name)
        label = ref.name
        chain = (*_chain, ref.name)
    else:
        definition = ref.task
        label = definition.label
        chain = _chain
        if definition.name:
            if definition.name in _chain:
                raise CyclicReference([*_chain, definition.name])
            chain = (*_chain, definition.name)
    children = [resolve_plan(c, lookup, chain) for c in definition.children]
    return PlanNode(
        name=label,
        kind=definition.kind,
        fn=definition.fn,
        children=children,
        description=definition.description,
    )
