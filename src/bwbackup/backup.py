"""
One backup run, start to finish.

    log in → create dated dir (0700) → export ×3 (each 0600) → upload → log out

Logout is tied to the VaultSession scope, so it runs on success, on any
error and on SIGTERM/SIGHUP (converted to TerminatedError for the
duration of the run). Upload failures are reported but never fail the run.
"""

from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from rich.markup import escape
from rich.table import Table

from . import output
from .config import BackupSettings
from .errors import TerminatedError
from .exporter import VaultExporter
from .layout import BackupLayout
from .session import VaultSession
from .uploader import ProtonDriveUploader

logger = logging.getLogger("bwbackup.backup")

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


@dataclass
class BackupResult:
    """What a completed run produced.

    Attributes:
        backup_dir: The dated directory holding the artifacts.
        artifacts: Artifact paths in the order they were written.
        uploaded: Upload outcome; None when Proton Drive is not configured.
    """

    backup_dir: Path
    artifacts: list[Path] = field(default_factory=list)
    uploaded: Optional[bool] = None


def _raise_terminated(signum, frame):
    raise TerminatedError(signum, signal.Signals(signum).name)


@contextmanager
def termination_guard(signals: tuple = TERMINATION_SIGNALS) -> Iterator[None]:
    """Turn termination signals into TerminatedError inside the block.

    The exception unwinds through the enclosing ``with`` statements so
    their cleanup runs. Previous handlers are restored on exit.
    """
    previous = {sig: signal.signal(sig, _raise_terminated) for sig in signals}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def print_config(
    settings: BackupSettings,
    layout: BackupLayout,
    uploader: Optional[ProtonDriveUploader],
) -> None:
    """Show where the run reads from and writes to. Never shows secrets."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Setting", style="bold")
    table.add_column("Value", style="cyan")

    table.add_row("Bitwarden CLI", escape(settings.bw_bin))
    table.add_row("Age CLI", escape(settings.age_bin))
    table.add_row("Output directory", escape(f"{layout.backup_dir}/"))

    if uploader is not None:
        table.add_row("Rclone CLI", escape(uploader.rclone_bin))
        table.add_row("Proton Drive remote name", escape(uploader.remote_name))
        table.add_row("Proton Drive destination path", escape(uploader.destination_dir(layout)))
    else:
        table.add_row("Proton Drive backup", "\\[not configured]")

    output.console.print("\nConfiguration:")
    output.console.print(table)
    output.console.print()


def run_backup(settings: BackupSettings, now: Optional[datetime] = None) -> BackupResult:
    """Run a full backup with already-validated settings.

    Args:
        settings: Output of ``load_settings``.
        now: Reference time for directory and filenames (tests).

    Returns:
        BackupResult describing the artifacts.

    Raises:
        AuthenticationError: If login or unlock fails.
        ExportError: If any export step fails.
        CleanupError: If logout fails after an otherwise clean run.
        TerminatedError: If SIGTERM/SIGHUP arrives mid-run.
    """
    layout = BackupLayout(
        base=settings.backup_dir_base,
        now=now or datetime.now(),
        layout=settings.backup_dir_layout,
    )
    uploader = ProtonDriveUploader.from_settings(settings)
    print_config(settings, layout, uploader)

    result = BackupResult(backup_dir=layout.backup_dir)

    with termination_guard():
        with VaultSession.from_settings(settings) as session:
            layout.prepare()
            exporter = VaultExporter(settings, session.token, layout)
            result.artifacts = exporter.export_all()

            if uploader is not None:
                result.uploaded = uploader.upload(layout)

    logger.info("Backup complete: %d artifacts in %s", len(result.artifacts), result.backup_dir)
    return result
