"""
back-up-bitwarden — scheduled, encrypted Bitwarden vault backups.

Exports the vault in three formats, encrypts the raw exports with age,
files everything under a dated directory tree and optionally ships the
day's backups to Proton Drive through rclone.
"""

import os

__version__ = "1.0.0"
__author__ = "Brian Ray"

CONFIG_DIR = os.environ.get("BWBACKUP_CONFIG_DIR", "~/.config/back-up-bitwarden")
