"""The backup command: ``back-up-bitwarden``."""

from __future__ import annotations

import click

from .. import __version__
from ..backup import run_backup
from ..config import load_settings
from ..errors import BackupError
from ._common import CONTEXT_SETTINGS, console, error, now, setup_logging

PROG_NAME = "back-up-bitwarden"


@click.command(PROG_NAME, context_settings=CONTEXT_SETTINGS)
@click.version_option(
    version=__version__, prog_name=PROG_NAME, message="%(prog)s version %(version)s",
)
def backup_command() -> int:
    """Back up your Bitwarden vault to a local directory.

    Writes three exports per run under BACKUP_DIR_BASE/YYYY/MM/DD/:
    Bitwarden's encrypted JSON, plus JSON and CSV encrypted with age.
    Optionally copies the day's directory to Proton Drive with rclone.

    All settings come from the environment, the settings file
    ($BWBACKUP_CONFIG_DIR/.env, default ~/.config/back-up-bitwarden/.env,
    or $BWBACKUP_ENV_FILE) or a secrets directory ($BWBACKUP_SECRETS_DIR).
    """
    setup_logging()
    console.print(f"Started Bitwarden backup process at {now()}.")

    status = 0
    try:
        settings = load_settings()
        run_backup(settings)
    except BackupError as exc:
        error(str(exc))
        status = 1
    except KeyboardInterrupt:
        error("Interrupted.")
        status = 130
    finally:
        console.print(f"\nFinished Bitwarden backup process at {now()}.")

    if status:
        raise SystemExit(status)
    return 0
