from __future__ import annotations

import asyncio
import shutil

from buildflow import task
from buildflow.logging import get_logger
from buildflow.utils import expand_globs, path_of


log = get_logger("buildtasks.assets")


def copy_assets(params: dict) -> int:
    src = path_of(params, "assets", "assets")
    dist = path_of(params, "dist", "dist")
    files = expand_globs([f"{src.as_posix()}/**/*"])
    for path in files:
        target = dist / path.relative_to(src)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
    log.info("Copied %d asset(s) to %s", len(files), dist)
    return len(files)


@task(name="assets")
async def assets(ctx):
    """Copy static assets into dist, keeping their relative layout."""
    await asyncio.to_thread(copy_assets, ctx.params)
