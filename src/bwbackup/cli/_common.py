"""Shared plumbing for the two entry points.

Provides logging setup and a strict invoker: usage errors (unknown
options, stray arguments) exit with status 1 rather than click's 2.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import click

from ..output import console, err_console, error, now, success

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_VAR = "BWBACKUP_LOG_LEVEL"

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

__all__ = [
    "CONTEXT_SETTINGS",
    "console",
    "err_console",
    "error",
    "invoke_strict",
    "now",
    "setup_logging",
    "success",
]


def setup_logging() -> None:
    """Send log records to stderr at ``$BWBACKUP_LOG_LEVEL`` (default WARNING)."""
    name = os.environ.get(LOG_LEVEL_VAR, "WARNING").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def invoke_strict(command: click.Command, args: Optional[list[str]] = None) -> None:
    """Run a click command as a program and exit with its status.

    Args:
        command: The command to run.
        args: Argument list; defaults to ``sys.argv[1:]``.
    """
    try:
        status = command.main(args=args, prog_name=command.name, standalone_mode=False)
    except click.UsageError as exc:
        exc.show()
        sys.exit(1)
    except click.Abort:
        err_console.print("Aborted!")
        sys.exit(130)
    sys.exit(status or 0)
