"""
back-up-bitwarden command line.

Two programs, neither takes arguments beyond --help / --version:

    back-up-bitwarden          run one backup
    back-up-bitwarden-wrapper  run one backup under dead-man's-switch monitoring

Entry points: bwbackup.cli:main, bwbackup.cli:wrapper_main
"""

from __future__ import annotations

from typing import Optional

from ._common import invoke_strict
from .backup import backup_command
from .wrapper import wrapper_command


def main(args: Optional[list[str]] = None) -> None:
    invoke_strict(backup_command, args)


def wrapper_main(args: Optional[list[str]] = None) -> None:
    invoke_strict(wrapper_command, args)
