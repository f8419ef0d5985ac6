"""
Backup configuration — environment, settings file and secrets directory.

Settings are resolved once at start-up, highest precedence first:

1. process environment variables (``BW_CLIENTID`` etc.);
2. the settings file, shell-style ``KEY=value`` lines
   (``$BWBACKUP_CONFIG_DIR/.env``, default
   ``~/.config/back-up-bitwarden/.env``, or ``$BWBACKUP_ENV_FILE``);
3. a secrets directory holding one secret per file, the file named after
   the setting (``$BWBACKUP_SECRETS_DIR``).

The resulting model is frozen. Secret values are SecretStr so they never
show up in a repr, a log line or the printed configuration.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import CONFIG_DIR
from .errors import ConfigurationError, DependencyError
from .process import find_program, is_executable

logger = logging.getLogger("bwbackup.config")

ENV_FILE_VAR = "BWBACKUP_ENV_FILE"
SECRETS_DIR_VAR = "BWBACKUP_SECRETS_DIR"

REQUIRED_SECRETS = [
    "bw_clientid",
    "bw_clientsecret",
    "bw_vault_password",
    "bw_json_password",
    "age_public_key",
]


class DirLayout(str, Enum):
    """How the dated backup directory is partitioned."""

    NESTED = "nested"  # <base>/<YYYY>/<MM>/<DD>
    FLAT = "flat"  # <base>/<YYYY-MM-DD>


_SOURCES = SettingsConfigDict(
    case_sensitive=False,
    env_ignore_empty=True,
    extra="ignore",
    frozen=True,
)


class BackupSettings(BaseSettings):
    """Every setting the backup run reads.

    The five credentials are declared optional here and checked by
    ``validate_settings`` so a missing one produces a readable error
    naming the variable instead of a pydantic dump.
    """

    model_config = _SOURCES

    bw_clientid: Optional[SecretStr] = None
    bw_clientsecret: Optional[SecretStr] = None
    bw_vault_password: Optional[SecretStr] = None
    bw_json_password: Optional[SecretStr] = None
    age_public_key: Optional[SecretStr] = None

    bw_bin: str = Field(default_factory=lambda: find_program("bw"))
    age_bin: str = Field(default_factory=lambda: find_program("age"))
    rclone_bin: str = Field(default_factory=lambda: find_program("rclone"))

    backup_dir_base: Path = Path("bitwarden_backups")
    backup_dir_layout: DirLayout = DirLayout.NESTED

    proton_drive_remote_name: str = ""
    proton_drive_dir_base: str = ""

    def secret(self, name: str) -> str:
        """Return the plain value of a credential, or '' if unset."""
        value = getattr(self, name)
        if value is None:
            return ""
        return value.get_secret_value()

    @property
    def proton_drive_requested(self) -> bool:
        """Whether either Proton Drive setting is present."""
        return bool(self.proton_drive_remote_name or self.proton_drive_dir_base)

    @property
    def proton_drive_configured(self) -> bool:
        """Whether uploads will actually run."""
        return (
            bool(self.proton_drive_remote_name)
            and bool(self.proton_drive_dir_base)
            and is_executable(self.rclone_bin)
        )


class MonitorSettings(BaseSettings):
    """The slice of configuration the monitoring wrapper needs."""

    model_config = _SOURCES

    healthchecks_url: str = ""


def resolve_env_file(path: Optional[Path] = None) -> Optional[Path]:
    """Locate the settings file.

    An explicitly named file (argument or ``$BWBACKUP_ENV_FILE``) must
    exist. The default location is used only if present.

    Args:
        path: Explicit settings file, overrides the environment.

    Returns:
        Path to read, or None when there is no settings file.

    Raises:
        ConfigurationError: If an explicitly named file is missing.
    """
    explicit = path or os.environ.get(ENV_FILE_VAR)
    if explicit:
        env_file = Path(explicit).expanduser()
        if not env_file.is_file():
            raise ConfigurationError(
                f"File {env_file} not found. Please create it first."
            )
        return env_file

    default = Path(CONFIG_DIR).expanduser() / ".env"
    return default if default.is_file() else None


def resolve_secrets_dir(path: Optional[Path] = None) -> Optional[Path]:
    """Locate the secrets directory, if one was named.

    Raises:
        ConfigurationError: If the named directory does not exist.
    """
    explicit = path or os.environ.get(SECRETS_DIR_VAR)
    if not explicit:
        return None
    secrets_dir = Path(explicit).expanduser()
    if not secrets_dir.is_dir():
        raise ConfigurationError(f"Secrets directory {secrets_dir} not found.")
    return secrets_dir


def _describe_validation(exc: ValidationError) -> str:
    """Collapse a pydantic error into one line per offending setting."""
    problems = []
    for err in exc.errors():
        name = ".".join(str(part) for part in err["loc"]).upper()
        problems.append(f"{name}: {err['msg']}")
    return "Invalid configuration: " + "; ".join(problems)


def validate_settings(settings: BackupSettings) -> None:
    """Reject a configuration the backup cannot run with.

    Checks, in order: required credentials, required programs, and the
    Proton Drive pair.

    Raises:
        ConfigurationError: On a missing credential or half-configured
            Proton Drive target.
        DependencyError: If bw or age is not an executable file.
    """
    for name in REQUIRED_SECRETS:
        if not settings.secret(name).strip():
            raise ConfigurationError(f"Required variable {name.upper()} not set")

    for name, var in (("bw", "bw_bin"), ("age", "age_bin")):
        if not is_executable(getattr(settings, var)):
            raise DependencyError(
                f"Command '{name}' not found. Install it or set {var.upper()}."
            )

    if not settings.proton_drive_requested:
        return

    if not is_executable(settings.rclone_bin):
        logger.warning(
            "Proton Drive settings present but rclone was not found; "
            "upload disabled. Set RCLONE_BIN to enable it."
        )
        return

    if not (settings.proton_drive_remote_name and settings.proton_drive_dir_base):
        raise ConfigurationError(
            "If either PROTON_DRIVE_REMOTE_NAME or PROTON_DRIVE_DIR_BASE is set, "
            "both must be set."
        )


def load_settings(
    env_file: Optional[Path] = None,
    secrets_dir: Optional[Path] = None,
) -> BackupSettings:
    """Build and validate the backup configuration.

    Args:
        env_file: Explicit settings file.
        secrets_dir: Explicit secrets directory.

    Returns:
        BackupSettings ready for a run.

    Raises:
        ConfigurationError: On any invalid or missing setting.
    """
    env_path = resolve_env_file(env_file)
    secrets_path = resolve_secrets_dir(secrets_dir)

    try:
        settings = BackupSettings(_env_file=env_path, _secrets_dir=secrets_path)
    except ValidationError as exc:
        raise ConfigurationError(_describe_validation(exc)) from exc

    validate_settings(settings)
    return settings


def load_monitor_settings(env_file: Optional[Path] = None) -> MonitorSettings:
    """Read only what the monitoring wrapper needs.

    Never fails on backup credentials; those are the child's business.
    """
    try:
        env_path = resolve_env_file(env_file)
    except ConfigurationError as exc:
        logger.warning("%s", exc)
        env_path = None

    try:
        return MonitorSettings(_env_file=env_path)
    except ValidationError as exc:
        logger.warning("%s", _describe_validation(exc))
        return MonitorSettings.model_construct(healthchecks_url="")
