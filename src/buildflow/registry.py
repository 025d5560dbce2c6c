from __future__ import annotations

import importlib
import pkgutil
from typing import Any, Dict, Iterator, List

from .core import PlanNode, Task, as_ref, leaf, resolve_plan
from .errors import UnknownTask
from .logging import get_logger


log = get_logger("buildflow.registry")


class Registry:
    """Name -> Task mapping owned by the caller.

    Registering an existing name replaces the previous binding. References
    are only looked up when a plan is built, so composites may name tasks
    that are registered later.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}

    def register(self, name: str, definition: Any) -> Task:
        if not name:
            raise ValueError("Task name must not be empty")
        if isinstance(definition, Task):
            spec = definition
        else:
            spec = getattr(definition, "_task_spec", None)
            if not isinstance(spec, Task):
                if not callable(definition):
                    raise TypeError(f"Cannot register {definition!r} as task '{name}'")
                spec = leaf(definition)
        spec = spec.named(name)
        if name in self._tasks:
            log.debug("Overwriting task definition: %s", name)
        self._tasks[name] = spec
        return spec

    def resolve(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTask(name, self._tasks.keys()) from None

    def plan(self, ref: Any) -> PlanNode:
        """Resolve a name or inline task into a concrete tree."""
        return resolve_plan(as_ref(ref), self.resolve)

    def names(self) -> List[str]:
        return sorted(self._tasks)

    def items(self) -> Iterator[tuple[str, Task]]:
        for name in self.names():
            yield name, self._tasks[name]

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)


def discover_tasks(registry: Registry, package: str = "buildtasks") -> Registry:
    """Import all modules in `package` and register the tasks they declare.

    Functions decorated with @task() and module-level named composites
    (built with sequence()/parallel(name=...)) are both collected.
    """
    try:
        pkg = importlib.import_module(package)
    except ModuleNotFoundError:
        log.warning("No tasks package found: %s", package)
        return registry
    modules = [pkg]
    for m in pkgutil.iter_modules(getattr(pkg, "__path__", []), prefix=f"{package}."):
        try:
            modules.append(importlib.import_module(m.name))
        except Exception as e:  # noqa: BLE001
            log.warning("Failed to import %s: %s", m.name, e)
    for mod in modules:
        for attr_name in dir(mod):
            obj = getattr(mod, attr_name)
            spec = obj if isinstance(obj, Task) else getattr(obj, "_task_spec", None)
            if isinstance(spec, Task) and spec.name:
                registry.register(spec.name, spec)
    return registry
