"""
Dated backup directory tree and artifact naming.

    <base>/
    └── 2026/10/19/                      (nested, default)
        ├── bitwarden_backup_2026-10-19_03-00-00-encrypted.json
        ├── bitwarden_backup_2026-10-19_03-00-00.json.age
        └── bitwarden_backup_2026-10-19_03-00-00.csv.age

The legacy flat layout uses a single ``<base>/2026-10-19/`` directory.
Directories are 0700, artifacts 0600.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .config import DirLayout

logger = logging.getLogger("bwbackup.layout")

FILENAME_PREFIX = "bitwarden_backup_"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

DIR_MODE = 0o700
FILE_MODE = 0o600


@dataclass(frozen=True)
class BackupLayout:
    """Where one run's artifacts go.

    Attributes:
        base: Root of the backup tree.
        now: The run's reference time; fixes both the directory and the
            filename timestamp.
        layout: Nested (Y/M/D) or flat (Y-M-D) partitioning.
    """

    base: Path
    now: datetime = field(default_factory=datetime.now)
    layout: DirLayout = DirLayout.NESTED

    @property
    def date_path(self) -> str:
        """Date partition relative to the base, e.g. ``2026/10/19``."""
        if self.layout == DirLayout.FLAT:
            return self.now.strftime("%Y-%m-%d")
        return self.now.strftime("%Y/%m/%d")

    @property
    def backup_dir(self) -> Path:
        return Path(self.base) / self.date_path

    @property
    def timestamp(self) -> str:
        return self.now.strftime(TIMESTAMP_FORMAT)

    @property
    def stem(self) -> str:
        """Filename shared by every artifact of the run, minus suffix."""
        return f"{FILENAME_PREFIX}{self.timestamp}"

    def artifact_path(self, suffix: str) -> Path:
        """Path for an artifact, e.g. ``artifact_path(".csv.age")``."""
        return self.backup_dir / f"{self.stem}{suffix}"

    def prepare(self) -> Path:
        """Create the backup directory (with parents) and make it private.

        Returns:
            Path: The backup directory.
        """
        directory = self.backup_dir
        directory.mkdir(parents=True, exist_ok=True)
        os.chmod(directory, DIR_MODE)
        logger.debug("Backup directory ready: %s", directory)
        return directory

    @staticmethod
    def restrict(path: Path) -> None:
        """Make an artifact readable and writable by its owner only."""
        os.chmod(path, FILE_MODE)
