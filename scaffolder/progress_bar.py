"""
progress_bar.py

Responsibility: the math and the text of the install progress bar.

Both helpers are pure. The caller owns the previous state and decides
where (and with which styles) the fragments are written.
"""

from __future__ import annotations

from dataclasses import dataclass

FILLED_GLYPH = "▒"
EMPTY_GLYPH = "░"
ERASE_CHAR = "\b"


@dataclass(frozen=True)
class ProgressBarState:
    done: int = 0
    redraw: bool = False


@dataclass(frozen=True)
class BarTexts:
    erase: str
    filled: str
    empty: str


def calculate_state(bar_length: int, previous_done: int, finished_count: int, total_count: int) -> ProgressBarState:
    """
    Quantize `finished_count / total_count` onto `bar_length` cells.

    Halves round up. Integer arithmetic keeps e.g. 30 * 3 / 4 == 22.5 exact.
    """
    if bar_length <= 0:
        raise ValueError(f"bar_length must be positive, got {bar_length}")
    if total_count <= 0:
        raise ValueError(f"total_count must be positive, got {total_count}")

    current = (2 * bar_length * finished_count + total_count) // (2 * total_count)
    return ProgressBarState(done=current, redraw=current != previous_done)


def build_bar_texts(bar_length: int, done: int) -> BarTexts:
    """Return the erase/filled/empty fragments for a bar with `done` cells filled."""
    if not 0 <= done <= bar_length:
        raise ValueError(f"done must be within [0, {bar_length}], got {done}")
    return BarTexts(
        erase=ERASE_CHAR * bar_length,
        filled=FILLED_GLYPH * done,
        empty=EMPTY_GLYPH * (bar_length - done),
    )
