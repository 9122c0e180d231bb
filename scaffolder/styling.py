"""
styling.py

Responsibility: build text style functions from lists of style names.

Names follow the chalk-like spelling used in option files: attributes
(`bold`, `dim`, ...), foreground colors (`green`, `brightRed`) and
background colors (`bgBlue`). Snake case (`bright_red`, `bg_blue`) works too.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable

import click

from scaffolder.options import OptionsError

Styler = Callable[[str], str]

_ATTRIBUTES = {"bold", "dim", "underline", "overline", "italic", "blink", "reverse", "strikethrough"}

_COLORS = {
    "black",
    "red",
    "green",
    "yellow",
    "blue",
    "magenta",
    "cyan",
    "white",
    "bright_black",
    "bright_red",
    "bright_green",
    "bright_yellow",
    "bright_blue",
    "bright_magenta",
    "bright_cyan",
    "bright_white",
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name.strip()).lower()


def _plain(text: str) -> str:
    return text


def style_kwargs(styles: Iterable[str]) -> dict[str, object]:
    """Translate style names into `click.style` keyword arguments."""
    kwargs: dict[str, object] = {}
    for raw in styles:
        name = _snake(raw)
        if name in _ATTRIBUTES:
            kwargs[name] = True
        elif name.startswith("bg_") and name[3:] in _COLORS:
            kwargs["bg"] = name[3:]
        elif name in _COLORS:
            kwargs["fg"] = name
        elif name == "gray" or name == "grey":
            kwargs["fg"] = "bright_black"
        else:
            raise OptionsError(f"Unknown style: {raw!r}")
    return kwargs


def make_styler(styles: Iterable[str] | None, *, enabled: bool = True) -> Styler:
    """
    Return a function that wraps text in the given styles.

    With no styles, or when styling is disabled, text is returned unchanged.
    """
    kwargs = style_kwargs(styles or ())
    if not enabled or not kwargs:
        return _plain

    def styler(text: str) -> str:
        return click.style(text, **kwargs)  # type: ignore[arg-type]

    return styler
