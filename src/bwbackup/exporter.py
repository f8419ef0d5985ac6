"""
Vault export — three artifacts per run.

1. Bitwarden's own encrypted JSON (bw encrypts with BW_JSON_PASSWORD).
2. Plain JSON piped straight into ``age -r <AGE_PUBLIC_KEY>``.
3. Plain CSV, same pipeline.

Plaintext never touches the disk: the raw exports exist only inside the
pipe between bw and age. Every artifact is chmod 0600 as soon as its
step returns, before the next step starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from . import output
from .config import BackupSettings
from .errors import ExportError
from .layout import BackupLayout
from .process import run, run_pipeline

logger = logging.getLogger("bwbackup.exporter")

NATIVE_SUFFIX = "-encrypted.json"


@dataclass(frozen=True)
class ExportFormat:
    """One age-encrypted raw export.

    Attributes:
        bw_format: Value for ``bw export --format``.
        description: Shown in the progress output.
    """

    bw_format: str
    description: str

    @property
    def suffix(self) -> str:
        return f".{self.bw_format}.age"


RAW_FORMATS = [
    ExportFormat("json", "plain text JSON, encrypted with age"),
    ExportFormat("csv", "plain text CSV, encrypted with age"),
]


class VaultExporter:
    """Writes the three export artifacts for one run.

    Args:
        settings: Validated backup configuration.
        token: Unlocked bw session key.
        layout: Destination layout; its directory must already exist.
    """

    def __init__(self, settings: BackupSettings, token: str, layout: BackupLayout):
        self.bw_bin = settings.bw_bin
        self.age_bin = settings.age_bin
        self._json_password = settings.secret("bw_json_password")
        self._recipient = settings.secret("age_public_key")
        self._token = token
        self.layout = layout

    def export_all(self) -> list[Path]:
        """Run every export in order.

        Returns:
            list[Path]: The artifacts, in the order they were written.

        Raises:
            ExportError: On the first failing step. Earlier artifacts are
                left in place.
        """
        artifacts = [self.export_native()]
        for fmt in RAW_FORMATS:
            artifacts.append(self.export_encrypted(fmt))
        return artifacts

    def export_native(self) -> Path:
        """Export in bw's password-protected ``encrypted_json`` format."""
        target = self.layout.artifact_path(NATIVE_SUFFIX)
        self._start("Bitwarden-specific encrypted JSON")

        result = run(
            [
                self.bw_bin, "export",
                "--session", self._token,
                "--format", "encrypted_json",
                "--password", self._json_password,
                "--output", str(target),
            ],
            capture=True,
        )
        if result.returncode != 0:
            raise ExportError(
                f"bw export (encrypted_json) exited with status {result.returncode}"
            )

        return self._finish(target)

    def export_encrypted(self, fmt: ExportFormat) -> Path:
        """Export raw ``fmt`` and encrypt it with age on the fly."""
        target = self.layout.artifact_path(fmt.suffix)
        self._start(fmt.description)

        result = run_pipeline(
            [
                self.bw_bin, "export",
                "--session", self._token,
                "--format", fmt.bw_format,
                "--raw",
            ],
            [
                self.age_bin, "--encrypt",
                "-r", self._recipient,
                "-o", str(target),
            ],
        )
        if not result.ok:
            raise ExportError(
                f"Export to {fmt.bw_format} failed: " + ", ".join(result.failures())
            )

        return self._finish(target)

    def _start(self, description: str) -> None:
        output.info(f"\nExporting Bitwarden vault via: {description} ...")

    def _finish(self, target: Path) -> Path:
        if not target.is_file():
            raise ExportError(f"Export reported success but {target} is missing")
        self.layout.restrict(target)
        logger.debug("Artifact written: %s", target)
        output.success(f"Exported to {target.name}.")
        return target
