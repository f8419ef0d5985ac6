"""Operator-facing console output.

Progress goes to stdout through Rich; fatal errors go to stderr so the
monitoring wrapper captures them. Diagnostics that are not part of the
narrative use the standard logging module instead.
"""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.markup import escape

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)


def info(message: str) -> None:
    console.print(escape(message))


def success(message: str) -> None:
    console.print(f"[green]✓[/] {escape(message)}")


def error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/] {escape(message)}")


def now() -> str:
    """Wall-clock time as ``10/19/2026 3:00:00 AM UTC``."""
    stamp = datetime.now().astimezone()
    hour = stamp.hour % 12 or 12
    return (
        f"{stamp.month}/{stamp.day}/{stamp.year} "
        f"{hour}:{stamp:%M:%S %p} {stamp.tzname()}"
    )
