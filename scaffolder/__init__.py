"""
scaffolder package

This package implements a CLI that creates a new project from a template
repository and installs its npm dependencies behind a live progress bar.

Key responsibilities are split across modules:
- `line_buffer.py`: assemble raw stream chunks into complete lines
- `events.py`: extract finished dependency names from npm log lines
- `progress_bar.py`: quantized progress state and bar text fragments
- `dependencies.py`: list the project's top level dependencies before install
- `install.py`: run `npm install` and drive the progress bar from its stderr
- `options.py` / `styling.py`: install options and terminal styles
- `logging_setup.py`: structlog configuration
- `cli.py`: CLI entrypoint and orchestration (clone -> git -> install)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
