from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Optional

import typer
import yaml
from dotenv import load_dotenv

from . import utils
from .core import PlanNode
from .errors import BuildflowError
from .executor import ExecutionContext, Executor, RunReport
from .logging import get_logger
from .registry import Registry, discover_tasks
from .watch import WatchTrigger


DEFAULT_CONFIG = "configs/base.yaml"

app = typer.Typer(add_completion=False, help="Build task orchestrator CLI")
log = get_logger("buildflow.cli")


def load_config(path: str | Path) -> dict:
    p = Path(path)
    if not p.exists():
        log.debug("Config not found, using defaults: %s", p)
        return {}
    with open(p, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _setup(config: str) -> tuple[dict, Registry]:
    load_dotenv()
    params = load_config(config)
    log_file = utils.log_file(params)
    if log_file:
        get_logger("buildflow", log_file=log_file)
    registry = discover_tasks(Registry(), utils.tasks_package(params))
    return params, registry


def _plan_or_exit(registry: Registry, name: str) -> PlanNode:
    try:
        return registry.plan(name)
    except BuildflowError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)


def _write_state(run_dir: Path, report: RunReport, run_id: str) -> None:
    run_dir.mkdir(parents=True, exist_ok=True)
    state = {"run_id": run_id, **report.to_dict()}
    with open(run_dir / "state.json", "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2)


@app.command("list")
def list_tasks(
    config: str = typer.Option(DEFAULT_CONFIG, help="Path to YAML config"),
):
    """List registered tasks."""
    _, registry = _setup(config)
    if not len(registry):
        typer.echo("No tasks registered. Decorate functions with @task() in the tasks package.")
        raise typer.Exit(code=0)
    typer.echo("Registered tasks:")
    for name, spec in registry.items():
        line = f"- {name} [{spec.kind.value}]"
        if spec.description:
            line += f"  {spec.description}"
        typer.echo(line)


@app.command()
def explain(
    name: Optional[str] = typer.Argument(None, help="Task name (default: the default task)"),
    config: str = typer.Option(DEFAULT_CONFIG, help="Path to YAML config"),
):
    """Print the resolved task tree without running anything."""
    params, registry = _setup(config)
    plan = _plan_or_exit(registry, name or utils.default_task(params))
    for line in plan.render():
        typer.echo(line)


@app.command()
def run(
    name: Optional[str] = typer.Argument(None, help="Task name to run"),
    watch: bool = typer.Option(False, "--watch", help="Keep running and re-run tasks on file changes"),
    config: str = typer.Option(DEFAULT_CONFIG, help="Path to YAML config"),
):
    """Run a task once, or start watch mode with --watch."""
    params, registry = _setup(config)
    root = name or (utils.watch_task(params) if watch else utils.default_task(params))
    plan = _plan_or_exit(registry, root)

    run_id = time.strftime("%Y%m%d-%H%M%S")
    params = dict(params)
    params["runtime"] = {"run_id": run_id, "watch": watch, "root": root}
    ctx = ExecutionContext(root=root, watch=watch, params=params)
    executor = Executor(registry)

    if watch:
        _run_watch(executor, plan, ctx)
        return

    report = asyncio.run(executor.execute(plan, ctx))
    _write_state(utils.runs_dir(params) / root / run_id, report, run_id)
    if not report.outcome.ok:
        typer.echo(f"Task failed: {report.outcome.error}", err=True)
        raise typer.Exit(code=1)
    log.info("Done: %s", root)


async def watch_loop(
    executor: Executor, plan: PlanNode, ctx: ExecutionContext, trigger: WatchTrigger
) -> None:
    """Run the root task alongside the watchers until interrupted.

    A failing root is logged and watching continues. If the watcher itself
    stops with an error, the root is cancelled and the error propagates.
    """

    def report_root(t: asyncio.Task) -> None:
        if t.cancelled():
            return
        if t.exception() is not None:
            log.error("'%s' crashed, still watching", plan.name, exc_info=t.exception())
            return
        outcome = t.result()
        if not outcome.ok:
            log.error("'%s' failed, still watching: %s", plan.name, outcome.error)

    root = asyncio.create_task(executor.run(plan, ctx))
    root.add_done_callback(report_root)
    try:
        await trigger.serve(interval=utils.watch_interval(ctx.params))
    finally:
        root.cancel()


def _run_watch(executor: Executor, plan: PlanNode, ctx: ExecutionContext) -> None:
    trigger = WatchTrigger(executor, params=ctx.params, delay=utils.watch_delay(ctx.params))
    try:
        for pattern, task_name in utils.watch_bindings(ctx.params):
            trigger.bind(pattern, task_name)
    except (BuildflowError, ValueError) as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    try:
        asyncio.run(watch_loop(executor, plan, ctx, trigger))
    except KeyboardInterrupt:
        log.info("Watch stopped")
        raise typer.Exit(code=130)
    except OSError:
        log.exception("File watcher stopped")
        raise typer.Exit(code=1)


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
