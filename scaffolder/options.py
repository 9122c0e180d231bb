"""
options.py

Responsibility: load install-progress options into a typed, frozen model.

Options come from built-in defaults, an optional YAML file and CLI flags,
in that order. Only known keys are taken; anything else is ignored with a
warning.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import structlog
import yaml

log = structlog.get_logger("scaffolder.options")


class OptionsError(ValueError):
    pass


@dataclass(frozen=True)
class InstallOptions:
    """Texts, styles and bar settings used while `npm install` runs."""

    # npm runs this package's postinstall last, e.g. "npm info postinstall este-app@x.y.z"
    app_module: str = "este-app"
    bar_length: int = 40
    styles_bar: tuple[str, ...] = ("white",)
    styles_processed: tuple[str, ...] = ("bold", "green")
    styles_text: tuple[str, ...] = ("bold", "white")
    message_read: str = "Reading list of dependencies..."
    message_install: str = "Installing npm dependencies:"
    message_post_install: str = "Running Este.js postinstall..."
    # Step numbering such as "5/6. Installing..."; disabled when total_subtasks is 0.
    subtask_index: int = 0
    total_subtasks: int = 0

    def step_text(self, increment: int) -> str:
        if not self.total_subtasks:
            return ""
        return f"{self.subtask_index + increment}/{self.total_subtasks}. "


_STYLE_KEYS = {"styles_bar", "styles_processed", "styles_text"}
_INT_KEYS = {"bar_length", "subtask_index", "total_subtasks"}


def _coerce(key: str, value: Any) -> Any:
    if key in _STYLE_KEYS:
        if isinstance(value, str):
            value = value.split()
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise OptionsError(f"`{key}` must be a list of style names.")
        return tuple(value)

    if key in _INT_KEYS:
        # bool is an int subclass.
        if isinstance(value, bool) or not isinstance(value, int):
            raise OptionsError(f"`{key}` must be an integer, got {value!r}.")
        if key == "bar_length" and value <= 0:
            raise OptionsError(f"`bar_length` must be positive, got {value}.")
        if value < 0:
            raise OptionsError(f"`{key}` must not be negative, got {value}.")
        return value

    if not isinstance(value, str) or not value.strip():
        raise OptionsError(f"`{key}` must be a non-empty string.")
    return value


def merge_options(overrides: Mapping[str, Any] | None, base: InstallOptions | None = None) -> InstallOptions:
    """
    Apply `overrides` on top of `base` (defaults when omitted).

    Keys that are not option names are ignored. `None` values keep the base value.
    """
    base = base or InstallOptions()
    if not overrides:
        return base

    known = {f.name for f in fields(InstallOptions)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            log.warning("unknown_option_ignored", option=key)
            continue
        if value is None:
            continue
        changes[key] = _coerce(key, value)

    return replace(base, **changes)


def load_options(path: str | Path) -> InstallOptions:
    """
    Load options from a YAML file.

    The file is either a mapping of option names, or has them nested under
    a top-level `install` key (so the options can live in a larger config).
    """
    p = Path(path)
    if not p.exists():
        raise OptionsError(f"Options file does not exist: {p}")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise OptionsError(f"Options file is not valid YAML: {p}") from e

    if not isinstance(data, dict):
        raise OptionsError("Options file must be a mapping/object at the top level.")

    if "install" in data:
        data = data["install"] or {}
        if not isinstance(data, dict):
            raise OptionsError("`install` must be an object/mapping when provided.")

    return merge_options(data)
