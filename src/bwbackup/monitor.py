"""
Dead man's switch — healthchecks.io-style liveness reporting.

The wrapper runs the backup as a child process and reports around it:

    idle → started → running → succeeded | failed → reported → idle

* ``<url>/start`` before the child starts;
* ``<url>`` when it exits zero;
* ``<url>/fail`` with the child's stderr (ANSI colours stripped) as the
  request body when it exits non-zero.

Monitoring is best-effort. Every ping is time-bounded and retried a few
times; an unreachable endpoint is logged and otherwise ignored. The
wrapper always exits with the child's status.
"""

from __future__ import annotations

import io
import logging
import re
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger("bwbackup.monitor")

PING_TIMEOUT = 10  # seconds per attempt
PING_RETRIES = 5
MAX_BODY_BYTES = 100_000  # healthchecks.io keeps at most this much

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences (colours, cursor moves)."""
    return _ANSI_ESCAPE.sub("", text)


def _tail_bytes(text: str, limit: int = MAX_BODY_BYTES) -> bytes:
    """Encode ``text`` keeping only its last ``limit`` bytes."""
    data = text.encode("utf-8")
    if len(data) <= limit:
        return data
    return data[-limit:]


def build_session(retries: int = PING_RETRIES) -> requests.Session:
    """A requests session that retries transient failures with backoff."""
    retry = Retry(
        total=retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET", "POST"}),
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class HealthcheckPinger:
    """Sends start/success/failure signals to a monitoring URL.

    With no URL configured every ping is a silent no-op.

    Args:
        url: Base ping URL, e.g. ``https://hc-ping.com/<uuid>``.
        timeout: Seconds per HTTP attempt.
        session: Injected requests session (tests); built lazily otherwise.
    """

    def __init__(
        self,
        url: Optional[str],
        timeout: float = PING_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = (url or "").rstrip("/")
        self.timeout = timeout
        self._session = session

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = build_session()
        return self._session

    def start(self) -> bool:
        return self._ping("start")

    def success(self) -> bool:
        return self._ping("")

    def failure(self, diagnostics: str = "") -> bool:
        """Report failure, carrying the cleaned-up diagnostics as the body."""
        return self._ping("fail", body=_tail_bytes(strip_ansi(diagnostics)))

    def _ping(self, signal: str, body: Optional[bytes] = None) -> bool:
        """Send one ping.

        Returns:
            bool: True if the endpoint acknowledged it.
        """
        if not self.enabled:
            return False

        url = f"{self.url}/{signal}" if signal else self.url
        try:
            if body is None:
                resp = self.session.get(url, timeout=self.timeout)
            else:
                resp = self.session.post(url, data=body, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Failed to ping healthchecks.io %s: %s", signal or "success", exc)
            return False

        logger.debug("Pinged %s", signal or "success")
        return True


class TeeWriter:
    """Relays bytes to a live stream while keeping a copy in memory.

    Args:
        stream: Binary stream to forward to, typically ``sys.stderr.buffer``.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self._buffer = io.BytesIO()

    def write(self, data: bytes) -> int:
        self.stream.write(data)
        self.stream.flush()
        self._buffer.write(data)
        return len(data)

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()

    def text(self) -> str:
        return self.getvalue().decode("utf-8", errors="replace")


@dataclass
class CapturedRun:
    """Outcome of a supervised child.

    Attributes:
        returncode: Raw status from subprocess (negative if signalled).
        stderr: Everything the child wrote to stderr.
    """

    returncode: int
    stderr: str = ""

    @property
    def exit_status(self) -> int:
        """Shell-style status: signals map to ``128 + signo``."""
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode


def run_with_capture(cmd: list[str], stream: Optional[BinaryIO] = None) -> CapturedRun:
    """Run ``cmd``, relaying its stderr live and capturing a copy.

    stdout is inherited untouched.

    Args:
        cmd: Command and arguments.
        stream: Where to relay stderr; defaults to our own stderr.

    Returns:
        CapturedRun with the exit status and captured stderr.
    """
    tee = TeeWriter(stream or sys.stderr.buffer)

    try:
        proc = subprocess.Popen(cmd, stderr=subprocess.PIPE)
    except OSError as exc:
        message = f"Cannot execute {cmd[0]}: {exc}"
        logger.error("%s", message)
        return CapturedRun(returncode=127, stderr=message)

    for chunk in iter(lambda: proc.stderr.read1(8192), b""):
        tee.write(chunk)
    proc.stderr.close()
    proc.wait()

    return CapturedRun(returncode=proc.returncode, stderr=tee.text())


class ReporterState(str, Enum):
    """Where the supervisor is in one run."""

    IDLE = "idle"
    STARTED = "started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REPORTED = "reported"


class LivenessReporter:
    """Supervises one backup run and reports its outcome.

    Args:
        pinger: Where to send signals.
        stream: Where to relay the child's stderr.
    """

    def __init__(self, pinger: HealthcheckPinger, stream: Optional[BinaryIO] = None):
        self.pinger = pinger
        self.stream = stream
        self.state = ReporterState.IDLE
        self.last_run: Optional[CapturedRun] = None

    def run(self, cmd: list[str]) -> int:
        """Ping start, run the child, ping the outcome.

        Returns:
            int: The child's exit status, unchanged by monitoring.
        """
        self.pinger.start()
        self.state = ReporterState.STARTED

        self.state = ReporterState.RUNNING
        captured = run_with_capture(cmd, stream=self.stream)
        self.last_run = captured

        if captured.exit_status == 0:
            self.state = ReporterState.SUCCEEDED
            self.pinger.success()
        else:
            self.state = ReporterState.FAILED
            self.pinger.failure(captured.stderr)
        self.state = ReporterState.REPORTED

        status = captured.exit_status
        self.state = ReporterState.IDLE
        return status


def supervise(
    cmd: list[str],
    pinger: HealthcheckPinger,
    stream: Optional[BinaryIO] = None,
) -> int:
    """Run ``cmd`` under a fresh LivenessReporter and return its status."""
    return LivenessReporter(pinger, stream=stream).run(cmd)
