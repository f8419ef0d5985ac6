"""Thin wrappers around subprocess for the external CLIs.

Every program this tool drives (bw, age, rclone) is invoked through
here so that command logging never leaks secrets and a missing binary
surfaces as a DependencyError instead of a bare OSError.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import DependencyError

logger = logging.getLogger("bwbackup.process")


def is_executable(path: Optional[str]) -> bool:
    """Check that a path names an executable regular file.

    Args:
        path: Candidate path, may be empty or None.

    Returns:
        bool: True if the file exists and has an execute bit for us.
    """
    if not path:
        return False
    return Path(path).is_file() and os.access(path, os.X_OK)


def find_program(name: str) -> str:
    """Return the first match for ``name`` on PATH, or an empty string."""
    return shutil.which(name) or ""


def describe(cmd: list[str]) -> str:
    """Render a command for logs without any of its arguments.

    Only the program name and its subcommand are shown; flags and their
    values (sessions, passwords, keys) never reach a log line.

    Args:
        cmd: Command and arguments.

    Returns:
        str: e.g. ``"bw export"``.
    """
    if not cmd:
        return ""
    parts = [Path(cmd[0]).name]
    if len(cmd) > 1 and not cmd[1].startswith("-"):
        parts.append(cmd[1])
    return " ".join(parts)


def child_env(**extra: str) -> dict[str, str]:
    """Copy the current environment and overlay ``extra``.

    Args:
        **extra: Variables to set for the child only.

    Returns:
        dict: Environment mapping for subprocess.
    """
    env = os.environ.copy()
    env.update(extra)
    return env


def run(
    cmd: list[str],
    env: Optional[dict[str, str]] = None,
    capture: bool = False,
    quiet: bool = False,
) -> subprocess.CompletedProcess:
    """Run a command to completion.

    stderr is left attached to ours so the operator (and the monitoring
    wrapper) sees the tool's own diagnostics.

    Args:
        cmd: Command and arguments.
        env: Environment for the child; inherits ours when None.
        capture: Capture stdout as text instead of passing it through.
        quiet: Discard both stdout and stderr.

    Returns:
        CompletedProcess with ``stdout`` set when captured.

    Raises:
        DependencyError: If the program cannot be executed at all.
    """
    if quiet:
        stdout = subprocess.DEVNULL
        stderr = subprocess.DEVNULL
    else:
        stdout = subprocess.PIPE if capture else None
        stderr = None

    logger.debug("Running %s", describe(cmd))
    try:
        return subprocess.run(
            cmd, env=env, stdout=stdout, stderr=stderr, text=True, check=False,
        )
    except OSError as exc:
        raise DependencyError(f"Cannot execute {cmd[0]}: {exc}") from exc


@dataclass
class PipelineResult:
    """Exit statuses of a two-stage pipeline.

    Attributes:
        commands: Each stage's command, in pipe order.
        returncodes: Each stage's exit status, in pipe order.
    """

    commands: list[list[str]] = field(default_factory=list)
    returncodes: list[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True only if every stage exited zero."""
        return bool(self.returncodes) and all(rc == 0 for rc in self.returncodes)

    def failures(self) -> list[str]:
        """Describe each failed stage, e.g. ``"bw export (exit 1)"``."""
        return [
            f"{describe(cmd)} (exit {rc})"
            for cmd, rc in zip(self.commands, self.returncodes)
            if rc != 0
        ]


def run_pipeline(
    producer: list[str],
    consumer: list[str],
    env: Optional[dict[str, str]] = None,
) -> PipelineResult:
    """Run ``producer | consumer`` and wait for both.

    The producer's stdout is connected to the consumer's stdin through an
    OS pipe; nothing is buffered in this process. If the wait is
    interrupted, both stages are killed and reaped before the exception
    propagates.

    Args:
        producer: Command whose stdout feeds the pipe.
        consumer: Command that reads the pipe.
        env: Environment for both children.

    Returns:
        PipelineResult with both exit statuses.

    Raises:
        DependencyError: If either program cannot be executed.
    """
    logger.debug("Running %s | %s", describe(producer), describe(consumer))
    try:
        first = subprocess.Popen(producer, stdout=subprocess.PIPE, env=env)
    except OSError as exc:
        raise DependencyError(f"Cannot execute {producer[0]}: {exc}") from exc

    try:
        second = subprocess.Popen(consumer, stdin=first.stdout, env=env)
    except OSError as exc:
        first.kill()
        first.wait()
        raise DependencyError(f"Cannot execute {consumer[0]}: {exc}") from exc
    finally:
        # The consumer holds its own copy; closing ours lets the producer
        # see SIGPIPE if the consumer exits early.
        first.stdout.close()

    try:
        second.wait()
        first.wait()
    except BaseException:
        # Interrupted (signal, Ctrl-C): neither stage may outlive the run.
        for proc in (first, second):
            proc.kill()
            proc.wait()
        raise

    return PipelineResult(
        commands=[producer, consumer],
        returncodes=[first.returncode, second.returncode],
    )
