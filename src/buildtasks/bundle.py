"""Bundler tasks.

These use the callback convention: the body starts the bundler and calls
`done` with its exit code when the process closes.
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Set

from buildflow import task
from buildflow.logging import get_logger
from buildflow.utils import command, project_root

from ._process import run_command


log = get_logger("buildtasks.bundle")

_running: Set[asyncio.Task] = set()


def run_bundler(ctx, argv: List[str], done: Callable[..., None]) -> None:
    log.info("Run bundler with options `%s`", " ".join(argv[1:]))
    proc = asyncio.get_running_loop().create_task(
        run_command(argv, cwd=project_root(ctx.params))
    )
    _running.add(proc)

    def closed(t: asyncio.Task) -> None:
        _running.discard(t)
        if t.cancelled():
            return
        done(t.exception() or t.result())

    proc.add_done_callback(closed)


@task(name="bundle-prod")
def bundle_prod(ctx, done):
    """Bundle scripts once for production."""
    run_bundler(ctx, command(ctx.params, "bundle", ["webpack"]), done)


@task(name="bundle-watch")
def bundle_watch(ctx, done):
    """Run the bundler in its own watch mode."""
    run_bundler(ctx, command(ctx.params, "bundle_watch", ["webpack", "--watch", "--progress"]), done)
