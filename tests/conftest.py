"""Shared test fixtures for back-up-bitwarden.

The external CLIs (bw, age, rclone) are replaced by small POSIX shell
scripts written into a temporary directory. Each appends its argv to a
call log so tests can assert on what ran and in which order. Failure
modes are selected through environment variables.
"""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from bwbackup.config import BackupSettings

FAKE_BW = r"""#!/bin/sh
echo "bw $*" >> "$FAKE_LOG"
case "$1" in
  login)
    if [ "$2" = "--check" ]; then
      [ -f "$FAKE_STATE" ] && exit 0
      exit 1
    fi
    if [ "$FAKE_BW_FAIL" = "login" ]; then echo "Invalid API key" >&2; exit 1; fi
    touch "$FAKE_STATE"
    ;;
  unlock)
    if [ "$FAKE_BW_FAIL" = "unlock" ]; then echo "Invalid master password." >&2; exit 1; fi
    printf 'fake-session-token'
    ;;
  export)
    if [ "$FAKE_BW_FAIL" = "export" ]; then echo "Export failed" >&2; exit 1; fi
    out=""
    prev=""
    for a in "$@"; do
      [ "$prev" = "--output" ] && out="$a"
      prev="$a"
    done
    if [ -n "$out" ]; then
      echo '{"encrypted": true}' > "$out"
    else
      echo '{"items": []}'
    fi
    ;;
  logout)
    if [ "$FAKE_BW_FAIL" = "logout" ]; then echo "Logout refused"; exit 1; fi
    rm -f "$FAKE_STATE"
    ;;
esac
exit 0
"""

FAKE_AGE = r"""#!/bin/sh
echo "age $*" >> "$FAKE_LOG"
if [ "$FAKE_AGE_FAIL" = "1" ]; then cat > /dev/null; exit 1; fi
out=""
prev=""
for a in "$@"; do
  [ "$prev" = "-o" ] && out="$a"
  prev="$a"
done
{ echo "age-encryption.org/v1"; cat; } > "$out"
"""

FAKE_RCLONE = r"""#!/bin/sh
echo "rclone $*" >> "$FAKE_LOG"
if [ "$FAKE_RCLONE_FAIL" = "1" ]; then echo "ERROR : directory not found" >&2; exit 1; fi
exit 0
"""

CREDENTIALS = {
    "BW_CLIENTID": "user.client-id",
    "BW_CLIENTSECRET": "client-secret",
    "BW_VAULT_PASSWORD": "master-password",
    "BW_JSON_PASSWORD": "json-password",
    "AGE_PUBLIC_KEY": "age1qqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqq",
}

MANAGED_VARS = [
    *CREDENTIALS,
    "BW_BIN",
    "AGE_BIN",
    "RCLONE_BIN",
    "BACKUP_DIR_BASE",
    "BACKUP_DIR_LAYOUT",
    "PROTON_DRIVE_REMOTE_NAME",
    "PROTON_DRIVE_DIR_BASE",
    "HEALTHCHECKS_URL",
    "BWBACKUP_ENV_FILE",
    "BWBACKUP_SECRETS_DIR",
    "FAKE_BW_FAIL",
    "FAKE_AGE_FAIL",
    "FAKE_RCLONE_FAIL",
]


def _write_script(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeTools:
    """Paths and call log of the fake CLIs."""

    def __init__(self, root: Path):
        self.root = root
        self.bin_dir = root / "bin"
        self.bin_dir.mkdir(parents=True)
        self.log = root / "calls.log"
        self.state = root / "bw-logged-in"
        self.bw = _write_script(self.bin_dir / "bw", FAKE_BW)
        self.age = _write_script(self.bin_dir / "age", FAKE_AGE)
        self.rclone = _write_script(self.bin_dir / "rclone", FAKE_RCLONE)

    def calls(self) -> list[str]:
        """Every recorded invocation, oldest first."""
        if not self.log.exists():
            return []
        return self.log.read_text().splitlines()

    def calls_to(self, prefix: str) -> list[str]:
        return [c for c in self.calls() if c.startswith(prefix)]


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path):
    """Strip every setting from the environment and hide the user's files."""
    for var in MANAGED_VARS:
        monkeypatch.delenv(var, raising=False)
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setattr("bwbackup.config.CONFIG_DIR", str(config_dir))
    return config_dir


@pytest.fixture
def fake_tools(tmp_path: Path, monkeypatch) -> FakeTools:
    """Install fake bw/age/rclone and point the call log at them."""
    tools = FakeTools(tmp_path / "tools")
    monkeypatch.setenv("FAKE_LOG", str(tools.log))
    monkeypatch.setenv("FAKE_STATE", str(tools.state))
    return tools


@pytest.fixture
def backup_env(clean_env, fake_tools: FakeTools, tmp_path: Path, monkeypatch) -> Path:
    """A complete, valid environment. Returns the backup base directory."""
    base = tmp_path / "backups"
    for key, value in CREDENTIALS.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("BW_BIN", str(fake_tools.bw))
    monkeypatch.setenv("AGE_BIN", str(fake_tools.age))
    monkeypatch.setenv("RCLONE_BIN", str(tmp_path / "no-such-rclone"))
    monkeypatch.setenv("BACKUP_DIR_BASE", str(base))
    return base


@pytest.fixture
def settings(backup_env) -> BackupSettings:
    """Validated settings built from ``backup_env``."""
    from bwbackup.config import load_settings

    return load_settings()
