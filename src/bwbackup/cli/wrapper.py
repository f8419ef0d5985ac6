"""The monitoring wrapper: ``back-up-bitwarden-wrapper``.

Runs the backup as a child process and reports start, success or
failure to HEALTHCHECKS_URL. Intended for cron / launchd / systemd
timers, where a missing ping is the alert.
"""

from __future__ import annotations

import sys

import click

from .. import __version__
from ..config import load_monitor_settings
from ..monitor import HealthcheckPinger, supervise
from ._common import CONTEXT_SETTINGS, console, setup_logging

PROG_NAME = "back-up-bitwarden-wrapper"


def backup_invocation() -> list[str]:
    """Command line that runs the backup in a child interpreter."""
    return [sys.executable, "-m", "bwbackup"]


@click.command(PROG_NAME, context_settings=CONTEXT_SETTINGS)
@click.version_option(
    version=__version__, prog_name=PROG_NAME, message="%(prog)s version %(version)s",
)
def wrapper_command() -> int:
    """Run the Bitwarden backup with healthchecks.io monitoring.

    Pings HEALTHCHECKS_URL/start, runs the backup, then pings
    HEALTHCHECKS_URL on success or HEALTHCHECKS_URL/fail with the
    backup's error output on failure. Exits with the backup's status.
    """
    setup_logging()
    settings = load_monitor_settings()

    if not settings.healthchecks_url:
        console.print(
            "HEALTHCHECKS_URL is not set. Skipping healthchecks.io integration.\n"
        )

    status = supervise(backup_invocation(), HealthcheckPinger(settings.healthchecks_url))
    if status:
        raise SystemExit(status)
    return 0
