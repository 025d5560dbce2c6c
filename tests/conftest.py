from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest

from buildflow import Executor, Registry


class Recorder:
    """Collects start/finish events from fake task bodies."""

    def __init__(self) -> None:
        self.events: List[str] = []

    @property
    def invoked(self) -> List[str]:
        return [e.split(":", 1)[1] for e in self.events if e.startswith("start:")]

    @property
    def finished(self) -> List[str]:
        return [e.split(":", 1)[1] for e in self.events if e.startswith("end:")]

    def body(self, name: str, fail: bool = False, delay: float = 0.0, gate: Optional[asyncio.Event] = None):
        async def run():
            self.events.append(f"start:{name}")
            if gate is not None:
                await gate.wait()
            await asyncio.sleep(delay)
            self.events.append(f"end:{name}")
            if fail:
                raise RuntimeError(f"{name} broke")

        run.__name__ = name
        return run


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def registry() -> Registry:
    return Registry()


@pytest.fixture()
def executor(registry: Registry) -> Executor:
    return Executor(registry)
