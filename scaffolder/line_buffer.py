"""
line_buffer.py

Responsibility: turn arbitrarily split stream chunks into complete lines.

Text that arrives after the last newline is kept until a later chunk
completes it.
"""

from __future__ import annotations


class LineBuffer:
    """Accumulates chunks and hands out newline-terminated lines."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def append(self, chunk: str) -> list[str] | None:
        """
        Add `chunk` and return the lines it completed, in arrival order.

        Returns None while the buffer holds no newline yet.
        """
        self._buffer += chunk
        if "\n" not in self._buffer:
            return None

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return lines

    def flush(self) -> str:
        """Return the pending partial line and clear the buffer."""
        rest, self._buffer = self._buffer, ""
        return rest
