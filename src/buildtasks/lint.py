from __future__ import annotations

from typing import List

from buildflow import task
from buildflow.utils import _get, command, project_root

from ._process import run_command


def lint_command(params: dict) -> List[str]:
    """Configured lint argv, defaulting to tslint over `paths.src`."""
    src = _get(params, "paths", "src", default="src")
    return command(params, "lint", ["tslint", "--format", "prose", f"{src}/**/*.ts"])


@task(name="lint")
async def lint(ctx):
    """Run the configured linter over the sources."""
    code = await run_command(lint_command(ctx.params), cwd=project_root(ctx.params))
    if code != 0:
        raise RuntimeError(f"Lint reported problems (exit code {code})")
