"""Exception hierarchy for the backup run.

Everything fatal derives from BackupError so the CLI can turn it into a
single ``Error: ...`` line and exit status 1.
"""

from __future__ import annotations


class BackupError(Exception):
    """Base class for every failure that aborts a backup run."""


class ConfigurationError(BackupError):
    """A required setting is missing, blank or inconsistent."""


class DependencyError(ConfigurationError):
    """A required external program is missing or not executable."""


class AuthenticationError(BackupError):
    """Logging in to or unlocking the vault failed."""


class ExportError(BackupError):
    """An export or encryption step failed."""


class UploadError(BackupError):
    """Copying the backup directory to the remote failed.

    Never escapes the uploader: uploads are best-effort.
    """


class CleanupError(BackupError):
    """Logging out of the vault failed after an otherwise clean run."""


class TerminatedError(BackupError):
    """The process received a termination signal mid-run."""

    def __init__(self, signum: int, name: str):
        super().__init__(f"Received {name}, aborting")
        self.signum = signum
