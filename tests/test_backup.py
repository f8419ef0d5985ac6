"""Tests for the backup orchestration, start to finish.

Every scenario drives the real subprocess path against the fake CLIs.
"""

from __future__ import annotations

import logging
import os
import signal
import stat
from datetime import datetime
from unittest.mock import patch

import pytest

from bwbackup.backup import BackupResult, run_backup, termination_guard
from bwbackup.config import load_settings
from bwbackup.errors import AuthenticationError, CleanupError, ExportError, TerminatedError
from bwbackup.exporter import VaultExporter

WHEN = datetime(2026, 10, 19, 3, 0, 0)


class TestRunBackup:
    """Tests for a full run."""

    def test_three_artifacts_in_dated_tree(self, settings, backup_env) -> None:
        result = run_backup(settings, now=WHEN)

        day_dir = backup_env / "2026" / "10" / "19"
        assert isinstance(result, BackupResult)
        assert result.backup_dir == day_dir
        assert sorted(p.name for p in day_dir.iterdir()) == [
            "bitwarden_backup_2026-10-19_03-00-00-encrypted.json",
            "bitwarden_backup_2026-10-19_03-00-00.csv.age",
            "bitwarden_backup_2026-10-19_03-00-00.json.age",
        ]
        assert result.uploaded is None

    def test_call_order(self, settings, fake_tools) -> None:
        """login, unlock, three exports, then the logout check and logout."""
        run_backup(settings, now=WHEN)

        bw_verbs = [" ".join(c.split()[:2]) for c in fake_tools.calls_to("bw ")]
        assert bw_verbs == [
            "bw login",
            "bw unlock",
            "bw export",
            "bw export",
            "bw export",
            "bw login",
            "bw logout",
        ]
        assert len(fake_tools.calls_to("age --encrypt")) == 2

    def test_directory_private_before_first_export(self, settings, backup_env) -> None:
        day_dir = backup_env / "2026" / "10" / "19"
        seen = {}
        original = VaultExporter.export_native

        def check_then_export(self):
            seen["exists"] = day_dir.is_dir()
            seen["mode"] = stat.S_IMODE(day_dir.stat().st_mode)
            seen["empty"] = not any(day_dir.iterdir())
            return original(self)

        with patch.object(VaultExporter, "export_native", check_then_export):
            run_backup(settings, now=WHEN)

        assert seen == {"exists": True, "mode": 0o700, "empty": True}

    def test_unlock_failure_exports_nothing(self, settings, backup_env, fake_tools, monkeypatch) -> None:
        monkeypatch.setenv("FAKE_BW_FAIL", "unlock")

        with pytest.raises(AuthenticationError):
            run_backup(settings, now=WHEN)

        assert fake_tools.calls_to("bw export") == []
        assert not backup_env.exists()
        assert fake_tools.calls_to("bw login --check") == ["bw login --check"]

    def test_export_failure_logs_out_once(self, settings, fake_tools, monkeypatch) -> None:
        monkeypatch.setenv("FAKE_AGE_FAIL", "1")

        with pytest.raises(ExportError):
            run_backup(settings, now=WHEN)

        assert fake_tools.calls_to("bw login --check") == ["bw login --check"]
        assert fake_tools.calls_to("bw logout") == ["bw logout"]

    def test_logout_failure_after_success(self, settings, monkeypatch) -> None:
        """A clean run whose logout fails is still a failure."""
        original = VaultExporter.export_all

        def export_then_break_logout(self):
            paths = original(self)
            os.environ["FAKE_BW_FAIL"] = "logout"
            return paths

        monkeypatch.setattr(VaultExporter, "export_all", export_then_break_logout)
        monkeypatch.setenv("FAKE_BW_FAIL", "")

        with pytest.raises(CleanupError):
            run_backup(settings, now=WHEN)

    def test_termination_signal_logs_out(self, settings, fake_tools, monkeypatch) -> None:
        """SIGTERM mid-run unwinds through the session scope."""

        def terminated(self):
            os.kill(os.getpid(), signal.SIGTERM)
            raise AssertionError("signal handler did not fire")  # pragma: no cover

        monkeypatch.setattr(VaultExporter, "export_all", terminated)

        with pytest.raises(TerminatedError):
            run_backup(settings, now=WHEN)

        assert fake_tools.calls_to("bw logout") == ["bw logout"]


class TestUploadStep:
    """Tests for the optional Proton Drive step within a run."""

    @pytest.fixture
    def proton_env(self, backup_env, fake_tools, monkeypatch):
        monkeypatch.setenv("RCLONE_BIN", str(fake_tools.rclone))
        monkeypatch.setenv("PROTON_DRIVE_REMOTE_NAME", "proton")
        monkeypatch.setenv("PROTON_DRIVE_DIR_BASE", "Backups/bitwarden")
        return backup_env

    def test_upload_after_exports(self, proton_env, fake_tools) -> None:
        result = run_backup(load_settings(), now=WHEN)

        assert result.uploaded is True
        verbs = [c.split()[0] + " " + c.split()[1] for c in fake_tools.calls()]
        assert verbs.index("rclone copy") > max(
            i for i, v in enumerate(verbs) if v == "bw export"
        )
        assert verbs.index("rclone copy") < verbs.index("bw logout")

    def test_upload_failure_is_not_fatal(self, proton_env, fake_tools, monkeypatch, caplog) -> None:
        monkeypatch.setenv("FAKE_RCLONE_FAIL", "1")

        with caplog.at_level(logging.ERROR):
            result = run_backup(load_settings(), now=WHEN)

        assert result.uploaded is False
        assert len(result.artifacts) == 3
        assert "Upload to Proton Drive failed" in caplog.text
        assert fake_tools.calls_to("bw logout") == ["bw logout"]


class TestTerminationGuard:
    """Tests for signal-to-exception conversion."""

    def test_sigterm_raises_inside_guard(self) -> None:
        with pytest.raises(TerminatedError) as info:
            with termination_guard():
                os.kill(os.getpid(), signal.SIGTERM)
        assert info.value.signum == signal.SIGTERM

    def test_previous_handler_restored(self) -> None:
        before = signal.getsignal(signal.SIGTERM)
        with termination_guard():
            pass
        assert signal.getsignal(signal.SIGTERM) is before
