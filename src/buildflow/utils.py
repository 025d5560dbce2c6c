"""Small helpers for reading config params and matching file globs."""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple


def _get(d: Dict, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
        if cur is None:
            return default
    return cur


def project_root(p: Dict) -> Path:
    return Path(_get(p, "project", "root", default="."))


def tasks_package(p: Dict) -> str:
    return _get(p, "project", "tasks_package", default="buildtasks")


def default_task(p: Dict) -> str:
    return _get(p, "project", "default_task", default="default")


def watch_task(p: Dict) -> str:
    return _get(p, "project", "watch_task", default="watch")


def runs_dir(p: Dict) -> Path:
    return project_root(p) / _get(p, "project", "runs_dir", default="runs")


def log_file(p: Dict) -> Optional[Path]:
    value = _get(p, "project", "log_file")
    return Path(value) if value else None


def path_of(p: Dict, key: str, default: str) -> Path:
    return project_root(p) / _get(p, "paths", key, default=default)


def command(p: Dict, key: str, default: List[str]) -> List[str]:
    value = _get(p, "commands", key, default=default)
    if isinstance(value, str):
        return value.split()
    return [str(v) for v in value]


def watch_bindings(p: Dict) -> List[Tuple[str, str]]:
    out: List[Tuple[str, str]] = []
    for entry in _get(p, "watch", default=[]) or []:
        if not isinstance(entry, dict) or "pattern" not in entry or "task" not in entry:
            raise ValueError(f"Invalid watch entry (need pattern and task): {entry!r}")
        out.append((str(entry["pattern"]), str(entry["task"])))
    return out


def watch_interval(p: Dict) -> float:
    return float(_get(p, "watch_settings", "interval", default=0.5))


def watch_delay(p: Dict) -> float:
    return float(_get(p, "watch_settings", "delay", default=0.1))


def normalize_path(path: str | Path) -> str:
    s = Path(path).as_posix()
    while s.startswith("./"):
        s = s[2:]
    return s


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        elif pattern[i] == "[" and "]" in pattern[i + 1 :]:
            end = pattern.index("]", i + 1)
            body = pattern[i + 1 : end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = end + 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out) + r"\Z")


def matches(path: str | Path, pattern: str) -> bool:
    """Glob match where `*` stays inside one directory and `**` spans any depth."""
    return _compile(normalize_path(pattern)).match(normalize_path(path)) is not None


def _glob_base(pattern: str) -> Path:
    parts = []
    for part in Path(pattern).parts:
        if any(ch in part for ch in "*?["):
            break
        parts.append(part)
    return Path(*parts) if parts else Path(".")


def expand_globs(patterns: Iterable[str]) -> List[Path]:
    """Expand glob patterns into existing files, in a stable order."""
    seen: set[str] = set()
    paths: List[Path] = []
    for pat in patterns:
        if any(ch in pat for ch in "*?["):
            base = _glob_base(pat)
            # Without ** the walk never needs to go deeper than the pattern
            max_depth = None if "**" in pat else len(Path(pat).parts) - len(base.parts) - 1
            for root, dirs, files in os.walk(base):
                if max_depth is not None and len(Path(root).relative_to(base).parts) >= max_depth:
                    dirs[:] = []
                for file in files:
                    p = Path(root) / file
                    key = normalize_path(p)
                    if key not in seen and matches(p, pat):
                        seen.add(key)
                        paths.append(p)
        else:

            p = Path(pat)
            key = normalize_path(p)
            if p.is_file() and key not in seen:
                seen.add(key)
                paths.append(p)
    return sorted(paths, key=normalize_path)


def safe_stat(path: Path) -> Tuple[Optional[int], Optional[float]]:
    try:
        st = path.stat()
        return st.st_size, st.st_mtime
    except OSError:
        # Vanished or unreadable files look the same to the poller
        return None, None
