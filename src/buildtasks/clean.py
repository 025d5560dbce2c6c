from __future__ import annotations

import asyncio
import shutil

from buildflow import task
from buildflow.logging import get_logger
from buildflow.utils import path_of, project_root


log = get_logger("buildtasks.clean")


def remove_outputs(params: dict) -> None:
    dist = path_of(params, "dist", "dist")
    if dist.exists():
        shutil.rmtree(dist)
        log.info("Removed %s", dist)
    for archive in project_root(params).glob("*.zip"):
        archive.unlink()
        log.info("Removed %s", archive)


@task(name="clean")
async def clean(ctx):
    """Remove the dist directory and zip archives."""
    await asyncio.to_thread(remove_outputs, ctx.params)
