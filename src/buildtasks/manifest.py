"""Manifest rendering.

The template uses mustache-style `{{ name }}` placeholders; values come from
`package.json` (version) and the optional `manifest.vars` config mapping.
Outside watch mode the rendered JSON is minified.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Dict

from buildflow import task
from buildflow.logging import get_logger
from buildflow.utils import _get, path_of


log = get_logger("buildtasks.manifest")

_PLACEHOLDER = re.compile(r"{{\s*([\w.]+)\s*}}")


def render(template: str, values: Dict[str, object]) -> str:
    # Unknown placeholders render empty, as in mustache
    return _PLACEHOLDER.sub(lambda m: str(values.get(m.group(1), "")), template)


def package_version(package_json: Path) -> str:
    with open(package_json, "r", encoding="utf-8") as f:
        return str(json.load(f)["version"])


def write_manifest(params: dict, minify: bool) -> Path:
    template_path = path_of(params, "manifest_template", "src/manifest.json.mustache")
    dist = path_of(params, "dist", "dist")

    values: Dict[str, object] = {"version": package_version(path_of(params, "package_json", "package.json"))}
    values.update(_get(params, "manifest", "vars", default={}) or {})
    text = render(template_path.read_text(encoding="utf-8"), values)
    if minify:
        text = json.dumps(json.loads(text), separators=(",", ":"), ensure_ascii=False)

    # manifest.json.mustache -> manifest.json
    out = dist / template_path.with_suffix("").name
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    log.info("Wrote %s (version %s)", out, values["version"])
    return out


@task(name="manifest")
async def manifest(ctx):
    """Render the manifest template into dist."""
    await asyncio.to_thread(write_manifest, ctx.params, not ctx.watch)
