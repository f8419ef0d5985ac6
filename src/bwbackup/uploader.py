"""
Proton Drive upload through rclone.

Copies the day's backup directory to
``<remote>:<PROTON_DRIVE_DIR_BASE>/<date path>/``. Upload is best-effort:
a failure is reported but never fails a run whose exports succeeded.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from . import output
from .config import BackupSettings
from .errors import BackupError, UploadError
from .layout import BackupLayout
from .process import run

logger = logging.getLogger("bwbackup.uploader")


class ProtonDriveUploader:
    """rclone-backed copy of one backup directory.

    Args:
        rclone_bin: Path to the rclone executable.
        remote_name: rclone remote, e.g. ``proton``.
        dir_base: Destination root on the remote.
    """

    def __init__(self, rclone_bin: str, remote_name: str, dir_base: str):
        self.rclone_bin = rclone_bin
        self.remote_name = remote_name
        self.dir_base = dir_base.rstrip("/")

    @classmethod
    def from_settings(cls, settings: BackupSettings) -> Optional[ProtonDriveUploader]:
        """Build an uploader, or None when Proton Drive is not configured."""
        if not settings.proton_drive_configured:
            return None
        return cls(
            rclone_bin=settings.rclone_bin,
            remote_name=settings.proton_drive_remote_name,
            dir_base=settings.proton_drive_dir_base,
        )

    def destination_dir(self, layout: BackupLayout) -> str:
        """Remote directory for a run, e.g. ``Backups/bitwarden/2026/10/19/``."""
        return f"{self.dir_base}/{layout.date_path}/"

    def destination(self, layout: BackupLayout) -> str:
        """Full rclone target, e.g. ``proton:Backups/bitwarden/2026/10/19/``."""
        return f"{self.remote_name}:{self.destination_dir(layout)}"

    def copy(self, source: Path, destination: str) -> None:
        """Run ``rclone copy`` with one-line progress stats.

        Raises:
            UploadError: If rclone exits non-zero or cannot be started.
        """
        try:
            result = run([
                self.rclone_bin, "copy",
                "-v", "--stats-one-line",
                str(source), destination,
            ])
        except BackupError as exc:
            raise UploadError(str(exc)) from exc

        if result.returncode != 0:
            raise UploadError(f"rclone copy exited with status {result.returncode}")

    def upload(self, layout: BackupLayout) -> bool:
        """Upload the run's backup directory.

        Args:
            layout: The run's layout; its directory should hold the
                artifacts.

        Returns:
            bool: True if the copy succeeded. Failures are logged, not
            raised.
        """
        source = layout.backup_dir
        if not source.is_dir():
            logger.error("Backups directory path not found: %s", source)
            return False

        output.info("\nUploading backups to Proton Drive...")
        try:
            self.copy(source, self.destination(layout))
        except UploadError as exc:
            logger.error("Upload to Proton Drive failed: %s", exc)
            return False

        output.success("Backups uploaded to Proton Drive.")
        return True
