"""
cli.py

Responsibility: CLI entrypoint for scaffolder.

High-level flow of `new`:
1) Clone the template repository into a fresh directory
2) Switch to the new project
3) Reinitialise git with a single initial commit (unless --keep-git)
4) Read the list of npm dependencies
5) `npm install` with a live progress bar
6) Report the app's own postinstall, then `npm dedupe`

`install` runs steps 4-6 in an existing project.

This module should orchestrate behavior but keep concerns isolated:
- Install progress: `install.py`
- Options: `options.py`
"""

from __future__ import annotations

import argparse
import os
import shutil
import subprocess
from dataclasses import replace
from pathlib import Path

import click
import structlog

from scaffolder.install import InstallError, install_with_progress
from scaffolder.logging_setup import LoggingSetupError, setup_logging
from scaffolder.options import InstallOptions, OptionsError, load_options, merge_options
from scaffolder.styling import make_styler

log = structlog.get_logger("scaffolder.cli")

DEFAULT_REPO = "https://github.com/steida/este"
NEW_TOTAL_STEPS = 6


class CLIError(RuntimeError):
    pass


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> None:
    """
    Run a subprocess command, raising a CLIError on failure.
    """
    log.debug("run", cmd=cmd, cwd=str(cwd))
    try:
        subprocess.run(cmd, cwd=str(cwd), env=env, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    except FileNotFoundError as e:
        if not cwd.is_dir():
            raise CLIError(f"Working directory not found: {cwd}") from e
        raise CLIError(f"Command not found: {cmd[0]}") from e
    except subprocess.CalledProcessError as e:
        raise CLIError(f"Command failed: {' '.join(cmd)}\n\n{e.stdout}") from e


def _git_env(base_env: dict[str, str]) -> dict[str, str]:
    """
    Fallback commit identity so the initial commit works on machines
    without a configured git user. Explicit settings win.
    """
    env = dict(base_env)
    env.setdefault("GIT_AUTHOR_NAME", "scaffolder")
    env.setdefault("GIT_AUTHOR_EMAIL", "scaffolder@example.invalid")
    env.setdefault("GIT_COMMITTER_NAME", env["GIT_AUTHOR_NAME"])
    env.setdefault("GIT_COMMITTER_EMAIL", env["GIT_AUTHOR_EMAIL"])
    return env


def _ensure_new_dir(path: Path) -> None:
    if path.exists():
        raise CLIError(f"Folder {path} already exists. Please choose different one")


def _reinit_git(workdir: Path) -> None:
    shutil.rmtree(workdir / ".git", ignore_errors=True)
    env = _git_env(os.environ.copy())
    _run(["git", "init"], cwd=workdir, env=env)
    _run(["git", "add", "."], cwd=workdir, env=env)
    _run(["git", "commit", "-m", "Initial commit"], cwd=workdir, env=env)


def _install_options(args: argparse.Namespace) -> InstallOptions:
    base = load_options(args.config) if args.config else InstallOptions()
    return merge_options({"bar_length": args.bar_length, "app_module": args.app_module}, base)


def _color(args: argparse.Namespace) -> bool | None:
    # None lets click decide based on whether stdout is a terminal.
    return False if args.no_color else None


def new_cmd(args: argparse.Namespace) -> int:
    dest = Path(args.dest or Path.cwd() / args.name).resolve()
    _ensure_new_dir(dest)

    color = _color(args)
    options = replace(_install_options(args), subtask_index=4, total_subtasks=NEW_TOTAL_STEPS)
    style_text = make_styler(options.styles_text, enabled=color is not False)

    def step(index: int, message: str) -> None:
        click.echo(style_text(f"{index}/{NEW_TOTAL_STEPS}. {message}"), color=color)

    step(1, "Cloning repository...")
    _run(["git", "clone", "--depth=1", args.repo, str(dest)], cwd=Path.cwd())

    step(2, "Going to newly created project...")

    if args.keep_git:
        step(3, "Using template repository...")
    else:
        step(3, "Reinitialising repository...")
        _reinit_git(dest)

    install_with_progress(dest, options, verbose=bool(args.verbose), color=color)

    if not args.no_dedupe:
        _run(["npm", "dedupe"], cwd=dest)

    return 0


def install_cmd(args: argparse.Namespace) -> int:
    workdir = Path(args.directory).resolve()
    if not workdir.is_dir():
        raise CLIError(f"Project directory not found: {workdir}")

    options = _install_options(args)
    install_with_progress(workdir, options, verbose=bool(args.verbose), color=_color(args))
    return 0


def _add_install_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("-v", "--verbose", action="store_true", help="Print npm output instead of a progress bar")
    p.add_argument("--config", default=None, help="YAML file with install options")
    p.add_argument("--bar-length", type=int, default=None, help="Progress bar width (default: 40)")
    p.add_argument("--app-module", default=None, help="Package whose postinstall runs last (default: este-app)")
    p.add_argument("--no-color", action="store_true", help="Disable colored output")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="scaffolder", description="Create projects from a template repository")
    p.add_argument("--log-level", default=None, help="Log level (or set env SCAFFOLDER_LOG_LEVEL)")
    sub = p.add_subparsers(dest="command", required=True)

    n = sub.add_parser("new", aliases=["n"], help="Create a new project from the template repository")
    n.add_argument("name", help="Project name")
    n.add_argument("dest", nargs="?", default=None, help="Destination directory (default: ./<name>)")
    n.add_argument("--repo", default=DEFAULT_REPO, help=f"Template repository (default: {DEFAULT_REPO})")
    n.add_argument("-k", "--keep-git", action="store_true", help="Keep the template's git history")
    n.add_argument("--no-dedupe", action="store_true", help="Skip `npm dedupe` after installing")
    _add_install_arguments(n)
    n.set_defaults(func=new_cmd)

    i = sub.add_parser("install", help="Install npm dependencies of an existing project with progress")
    i.add_argument("directory", nargs="?", default=".", help="Project directory (default: .)")
    _add_install_arguments(i)
    i.set_defaults(func=install_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        setup_logging(args.log_level)
        return int(args.func(args))
    except (CLIError, InstallError, OptionsError, LoggingSetupError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
