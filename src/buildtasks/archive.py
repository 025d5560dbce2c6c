from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path
from typing import List

from buildflow import task
from buildflow.logging import get_logger
from buildflow.utils import _get, expand_globs, path_of, project_root


log = get_logger("buildtasks.archive")

SOURCE_PATTERNS = [
    "assets/**/*",
    "src/**/*",
    "test/**/*",
    ".node-version",
    ".editorconfig",
    ".gitignore",
    "*.js",
    "*.json",
    "*.yml",
    "*.md",
    "yarn.lock",
    "LICENSE",
]


def write_zip(out: Path, base: Path, files: List[Path]) -> int:
    out.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in files:
            if path.resolve() == out.resolve():
                continue
            zf.write(path, path.relative_to(base).as_posix())
            count += 1
    log.info("Wrote %s (%d file(s))", out, count)
    return count


def archive_dist(params: dict) -> int:
    dist = path_of(params, "dist", "dist")
    files = expand_globs([f"{dist.as_posix()}/**/*"])
    return write_zip(project_root(params) / "archive.zip", dist, files)


def archive_source(params: dict) -> int:
    root = project_root(params)
    patterns = _get(params, "archive", "source_patterns", default=SOURCE_PATTERNS)
    files = expand_globs([(root / p).as_posix() for p in patterns])
    return write_zip(root / "source.zip", root, files)


@task(name="zip.archive")
async def zip_archive(ctx):
    """Zip the dist directory into archive.zip."""
    await asyncio.to_thread(archive_dist, ctx.params)


@task(name="zip.source")
async def zip_source(ctx):
    """Zip the source tree into source.zip."""
    await asyncio.to_thread(archive_source, ctx.params)
