"""
events.py

Responsibility: find finished postinstall steps in `npm install --loglevel=info`
stderr lines.

npm logs `npm info postinstall <name>@<version>` once a dependency's
postinstall step has run. Everything else in the stream is noise here.
"""

from __future__ import annotations

import re
from typing import Iterable

POSTINSTALL_PREFIX = "npm info postinstall"

# Group 1 is the dependency name (anything up to the first "@").
POSTINSTALL_RE = re.compile(r"^" + re.escape(POSTINSTALL_PREFIX) + r" ([^\r@]+)@.+$")


def extract_dependencies(lines: Iterable[str] | None) -> list[str]:
    """
    Return the dependency names of all postinstall lines, in input order.

    Lines that do not match are skipped.
    """
    deps: list[str] = []
    if not lines:
        return deps

    for line in lines:
        m = POSTINSTALL_RE.match(line)
        if m:
            deps.append(m.group(1))
    return deps
