"""Subprocess helpers shared by command-backed tasks."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

from buildflow.logging import get_logger


log = get_logger("buildtasks.process")


async def run_command(argv: List[str], cwd: Optional[Path] = None) -> int:
    """Run `argv` with the parent's stdout/stderr and return its exit code."""
    log.info("Run `%s`", " ".join(argv))
    proc = await asyncio.create_subprocess_exec(*argv, cwd=cwd)
    try:
        return await proc.wait()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.terminate()
        raise
