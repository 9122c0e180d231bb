"""
dependencies.py

Responsibility: list the top level npm dependencies of a project before
`npm install` runs, so install progress has something to count against.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Any, Callable

import structlog

log = structlog.get_logger("scaffolder.dependencies")

# npm ls exits non-zero while packages are missing, which is the normal
# state before the first install; its output is still usable.
LIST_COMMAND = ["npm", "ls", "--depth=0", "--parseable", "--loglevel=silent"]

_PATH_SEP_RE = re.compile(r"[/\\]")


def parse_dependency_paths(text: str) -> list[str]:
    """
    Parse `npm ls --parseable` output into dependency names.

    The first line is the project itself. For every other line the final
    path segment is the dependency's directory name.
    """
    names: list[str] = []
    seen: set[str] = set()
    for line in text.strip().splitlines()[1:]:
        name = _PATH_SEP_RE.split(line.strip())[-1]
        if not name or name in seen:
            continue
        seen.add(name)
        names.append(name)
    return names


def read_dependencies(cwd: Path, *, run: Callable[..., Any] = subprocess.run) -> list[str]:
    """Run the listing command in `cwd` and return the dependency names."""
    proc = run(LIST_COMMAND, cwd=str(cwd), stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, text=True, check=False)
    if proc.returncode != 0:
        log.debug("npm_ls_nonzero_exit", returncode=proc.returncode)

    names = parse_dependency_paths(proc.stdout or "")
    log.debug("dependencies_listed", count=len(names))
    return names
