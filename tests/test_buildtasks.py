"""Tests for the concrete build task bodies."""

from __future__ import annotations

import asyncio
import json
import shutil
import sys
import threading
import zipfile
from pathlib import Path

import pytest

from buildflow import ExecutionContext, Executor, Registry, TaskBodyFailure, discover_tasks, parallel
from buildtasks.lint import lint_command
from buildtasks.manifest import render


@pytest.fixture()
def site(tmp_path: Path) -> Path:
    (tmp_path / "assets" / "img").mkdir(parents=True)
    (tmp_path / "assets" / "icon.png").write_bytes(b"png")
    (tmp_path / "assets" / "img" / "logo.svg").write_text("<svg/>")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "manifest.json.mustache").write_text(
        '{\n  "name": "demo",\n  "version": "{{ version }}",\n  "title": "{{title}}"\n}\n'
    )
    (tmp_path / "src" / "index.ts").write_text("export {}\n")
    (tmp_path / "package.json").write_text(json.dumps({"version": "1.2.3"}))
    (tmp_path / "README.md").write_text("# demo\n")
    return tmp_path


@pytest.fixture()
def build_executor() -> Executor:
    return Executor(discover_tasks(Registry(), "buildtasks"))


def make_ctx(root: Path, name: str, watch: bool = False, **extra) -> ExecutionContext:
    params = {"project": {"root": str(root)}, **extra}
    return ExecutionContext(root=name, watch=watch, params=params)


def test_render_placeholders():
    assert render("v{{ version }}-{{missing}}", {"version": "2"}) == "v2-"


@pytest.mark.asyncio
async def test_assets_copied(site, build_executor):
    outcome = await build_executor.run("assets", make_ctx(site, "assets"))
    assert outcome.ok
    assert (site / "dist" / "icon.png").read_bytes() == b"png"
    assert (site / "dist" / "img" / "logo.svg").exists()


@pytest.mark.asyncio
async def test_manifest_minified_in_production(site, build_executor):
    ctx = make_ctx(site, "manifest", manifest={"vars": {"title": "Demo"}})
    assert (await build_executor.run("manifest", ctx)).ok
    text = (site / "dist" / "manifest.json").read_text()
    assert text == '{"name":"demo","version":"1.2.3","title":"Demo"}'


@pytest.mark.asyncio
async def test_manifest_pretty_in_watch_mode(site, build_executor):
    assert (await build_executor.run("manifest", make_ctx(site, "manifest", watch=True))).ok
    text = (site / "dist" / "manifest.json").read_text()
    assert "\n" in text
    assert json.loads(text)["version"] == "1.2.3"


@pytest.mark.asyncio
async def test_manifest_missing_package_json(site, build_executor):
    (site / "package.json").unlink()
    outcome = await build_executor.run("manifest", make_ctx(site, "manifest"))
    assert isinstance(outcome.error, TaskBodyFailure)
    assert isinstance(outcome.error.cause, FileNotFoundError)


@pytest.mark.asyncio
async def test_clean_then_zip(site, build_executor):
    ctx = make_ctx(site, "build-watch")
    assert (await build_executor.run("build-watch", ctx)).ok
    (site / "stale.zip").write_bytes(b"")

    assert (await build_executor.run("zip", make_ctx(site, "zip"))).ok
    with zipfile.ZipFile(site / "archive.zip") as zf:
        assert sorted(zf.namelist()) == ["icon.png", "img/logo.svg", "manifest.json"]
    with zipfile.ZipFile(site / "source.zip") as zf:
        names = zf.namelist()
    assert "src/index.ts" in names
    assert "package.json" in names
    assert "README.md" in names
    assert not any(n.endswith(".zip") for n in names)

    assert (await build_executor.run("clean", make_ctx(site, "clean"))).ok
    assert not (site / "dist").exists()
    assert list(site.glob("*.zip")) == []


@pytest.mark.asyncio
async def test_bundle_exit_code_fails_task(site, build_executor):
    ctx = make_ctx(site, "bundle-prod", commands={"bundle": [sys.executable, "-c", "raise SystemExit(3)"]})
    outcome = await build_executor.run("bundle-prod", ctx)
    assert isinstance(outcome.error, TaskBodyFailure)
    assert outcome.error.cause == 3


@pytest.mark.asyncio
async def test_bundle_success(site, build_executor):
    ctx = make_ctx(site, "bundle-prod", commands={"bundle": [sys.executable, "-c", "pass"]})
    assert (await build_executor.run("bundle-prod", ctx)).ok


@pytest.mark.asyncio
async def test_lint_failure(site, build_executor):
    ctx = make_ctx(site, "test", commands={"lint": [sys.executable, "-c", "raise SystemExit(1)"]})
    outcome = await build_executor.run("test", ctx)
    assert isinstance(outcome.error.cause, RuntimeError)
    assert "exit code 1" in str(outcome.error)


def test_lint_command_uses_source_dir():
    assert lint_command({"paths": {"src": "source"}}) == [
        "tslint",
        "--format",
        "prose",
        "source/**/*.ts",
    ]
    assert lint_command({"commands": {"lint": "eslint ."}}) == ["eslint", "."]


@pytest.mark.asyncio
async def test_asset_copy_does_not_block_the_loop(site, build_executor, monkeypatch):
    released = threading.Event()
    waited = []
    real_copy = shutil.copy2

    def gated_copy(src, dst):
        waited.append(released.wait(timeout=2))
        return real_copy(src, dst)

    async def release():
        await asyncio.sleep(0.01)
        released.set()

    monkeypatch.setattr(shutil, "copy2", gated_copy)
    outcome = await build_executor.run(parallel("assets", release), make_ctx(site, "assets"))
    assert outcome.ok
    assert waited and all(waited)
    assert (site / "dist" / "icon.png").exists()
