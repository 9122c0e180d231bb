"""
install.py

Responsibility: run `npm install` and show its progress.

npm logs a postinstall line for each dependency on stderr when run with
`--loglevel=info`. `InstallProgress` turns those lines into redraws of a
single-line progress bar; `run_install` owns the subprocess and feeds it.

Terminal output is written through `click.echo`, so styles are stripped
automatically when stdout is not a terminal.
"""

from __future__ import annotations

import codecs
import subprocess
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Callable, Iterable

import click
import structlog

from scaffolder.dependencies import read_dependencies
from scaffolder.events import extract_dependencies
from scaffolder.line_buffer import LineBuffer
from scaffolder.options import InstallOptions
from scaffolder.progress_bar import ProgressBarState, build_bar_texts, calculate_state
from scaffolder.styling import make_styler

log = structlog.get_logger("scaffolder.install")

INSTALL_COMMAND = ["npm", "install", "--loglevel=info"]

READ_SIZE = 8192
# Keep at most this many chunks (about 8 MB) of npm output for error reports.
OUTPUT_TAIL_CHUNKS = 1024
STOP_TIMEOUT = 5


class InstallError(RuntimeError):
    def __init__(self, returncode: int, output: str) -> None:
        super().__init__(f"npm install failed with exit code {returncode}\n\n{output}")
        self.returncode = returncode
        self.output = output


@dataclass(frozen=True)
class InstallResult:
    expected: tuple[str, ...]
    finished: tuple[str, ...]
    postinstall_started: bool


class InstallProgress:
    """
    Progress state for one `npm install` run.

    Call `start()` once, `feed()` for every decoded stderr chunk and
    `finish()` after the process has exited.
    """

    def __init__(
        self,
        dependencies: Iterable[str],
        options: InstallOptions,
        *,
        out: IO[str] | None = None,
        color: bool | None = None,
    ) -> None:
        self._options = options
        self._out = out
        self._color = color

        self._expected = list(dict.fromkeys(dependencies))
        self._expected_set = set(self._expected)
        self._finished: list[str] = []
        self._finished_set: set[str] = set()

        self._buffer = LineBuffer()
        self._state = ProgressBarState()
        self._bar_open = False
        self.postinstall_started = False

        styled = color is not False
        self._style_bar = make_styler(options.styles_bar, enabled=styled)
        self._style_processed = make_styler(options.styles_processed, enabled=styled)
        self._style_text = make_styler(options.styles_text, enabled=styled)

    @property
    def has_bar(self) -> bool:
        return bool(self._expected)

    @property
    def done(self) -> int:
        return self._state.done

    @property
    def finished(self) -> tuple[str, ...]:
        return tuple(self._finished)

    def _write(self, text: str) -> None:
        click.echo(text, file=self._out, nl=False, color=self._color)

    def start(self) -> None:
        """Print the install message, followed by an empty bar when there is something to count."""
        message = self._options.step_text(1) + self._options.message_install
        if not self.has_bar:
            self._write(self._style_text(message) + "\n")
            return

        texts = build_bar_texts(self._options.bar_length, 0)
        self._write(self._style_text(message + " ") + self._style_bar(texts.empty))
        self._bar_open = True

    def feed(self, chunk: str) -> None:
        lines = self._buffer.append(chunk)
        if lines is None:
            return
        self._process_lines(lines)

    def finish(self) -> None:
        """Process a trailing unterminated line and close the bar line."""
        rest = self._buffer.flush()
        if rest:
            self._process_lines([rest])
        if self._bar_open:
            self._write("\n")
            self._bar_open = False

    def _process_lines(self, lines: list[str]) -> None:
        found = extract_dependencies(lines)
        if not found:
            return

        processed: list[str] = []
        for dep in found:
            if dep in self._expected_set and dep not in self._finished_set:
                self._finished_set.add(dep)
                self._finished.append(dep)
                processed.append(dep)

        if processed:
            log.debug("dependencies_finished", found=processed, finished=len(self._finished), total=len(self._expected))
            self._state = calculate_state(
                self._options.bar_length,
                self._state.done,
                len(self._finished),
                len(self._expected),
            )

        # Nothing is drawn below the postinstall message.
        if self._state.redraw and not self.postinstall_started:
            self._redraw()

        if self._options.app_module in found and not self.postinstall_started:
            self.postinstall_started = True
            lead = "\n" if self._bar_open else ""
            self._write(lead + self._style_text(self._options.step_text(2) + self._options.message_post_install) + "\n")
            self._bar_open = False

    def _redraw(self) -> None:
        texts = build_bar_texts(self._options.bar_length, self._state.done)
        # Only retract a bar that is still on the current line.
        erase = texts.erase if self._bar_open else ""
        self._write(erase + self._style_processed(texts.filled) + self._style_bar(texts.empty))
        self._bar_open = True
        self._state = ProgressBarState(done=self._state.done, redraw=False)


def _decode_chunks(stream: IO[bytes]) -> Iterable[str]:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    for chunk in iter(lambda: stream.read(READ_SIZE), b""):
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


def _stop(proc: Any) -> None:
    """Terminate the child, escalating to kill when it does not exit in time."""
    log.debug("install_stopping", pid=getattr(proc, "pid", None))
    proc.terminate()
    try:
        proc.wait(timeout=STOP_TIMEOUT)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


def _run_verbose(
    cwd: Path,
    *,
    out: IO[str] | None,
    color: bool | None,
    popen: Callable[..., Any],
) -> int:
    prefix = make_styler(("bold", "green"), enabled=color is not False)("[NPM] ")
    dim = make_styler(("dim",), enabled=color is not False)
    collected: deque[str] = deque(maxlen=OUTPUT_TAIL_CHUNKS)

    proc = popen(INSTALL_COMMAND, cwd=str(cwd), stdout=subprocess.PIPE, stderr=subprocess.STDOUT, bufsize=0)
    assert proc.stdout is not None
    try:
        for text in _decode_chunks(proc.stdout):
            collected.append(text)
            click.echo(prefix + dim(text), file=out, nl=False, color=color)
    except BaseException:
        _stop(proc)
        raise

    rc = proc.wait()
    if rc != 0:
        raise InstallError(rc, "".join(collected))
    return rc


def run_install(
    cwd: Path,
    dependencies: Iterable[str],
    options: InstallOptions,
    *,
    verbose: bool = False,
    out: IO[str] | None = None,
    color: bool | None = None,
    popen: Callable[..., Any] = subprocess.Popen,
) -> InstallResult:
    """
    Run `npm install` in `cwd`, drawing progress against `dependencies`.

    In verbose mode npm's output is echoed instead of drawing a bar.
    Raises InstallError with npm's collected output when npm exits non-zero.
    """
    expected = tuple(dict.fromkeys(dependencies))
    log.debug("install_started", cwd=str(cwd), dependencies=len(expected), verbose=verbose)

    if verbose:
        _run_verbose(cwd, out=out, color=color, popen=popen)
        return InstallResult(expected=expected, finished=(), postinstall_started=False)

    progress = InstallProgress(expected, options, out=out, color=color)
    progress.start()

    collected: deque[str] = deque(maxlen=OUTPUT_TAIL_CHUNKS)
    proc = popen(INSTALL_COMMAND, cwd=str(cwd), stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, bufsize=0)
    assert proc.stderr is not None
    try:
        for text in _decode_chunks(proc.stderr):
            collected.append(text)
            progress.feed(text)
    except BaseException:
        # npm would block on a full stderr pipe once nobody reads it.
        _stop(proc)
        raise

    rc = proc.wait()
    progress.finish()

    log.debug("install_exited", returncode=rc, finished=len(progress.finished))
    if rc != 0:
        raise InstallError(rc, "".join(collected))

    return InstallResult(
        expected=expected,
        finished=progress.finished,
        postinstall_started=progress.postinstall_started,
    )


def install_with_progress(
    cwd: Path,
    options: InstallOptions,
    *,
    verbose: bool = False,
    out: IO[str] | None = None,
    color: bool | None = None,
    popen: Callable[..., Any] = subprocess.Popen,
    run: Callable[..., Any] = subprocess.run,
) -> InstallResult:
    """Read the project's dependency list, then install with progress."""
    style_text = make_styler(options.styles_text, enabled=color is not False)
    click.echo(style_text(options.step_text(0) + options.message_read), file=out, color=color)

    dependencies = read_dependencies(cwd, run=run)
    return run_install(cwd, dependencies, options, verbose=verbose, out=out, color=color, popen=popen)
