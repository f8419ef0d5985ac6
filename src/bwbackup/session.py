"""
Bitwarden CLI session — login, unlock and guaranteed logout.

Usage:
    with VaultSession.from_settings(settings) as session:
        exporter = VaultExporter(settings, session.token, layout)
        ...

Entering the block logs in with the API key and unlocks the vault.
Leaving it, by any route, checks ``bw login --check`` and logs out if a
session is still active. Logout happens at most once per session object.
"""

from __future__ import annotations

import logging
from typing import Optional

from . import output
from .config import BackupSettings
from .errors import AuthenticationError, CleanupError, DependencyError
from .process import child_env, run

logger = logging.getLogger("bwbackup.session")


class VaultSession:
    """An authenticated, unlocked bw CLI session.

    Args:
        bw_bin: Path to the bw executable.
        client_id: API key client id.
        client_secret: API key client secret.
        master_password: Vault master password, used for unlock.
    """

    def __init__(
        self,
        bw_bin: str,
        client_id: str,
        client_secret: str,
        master_password: str,
    ):
        self.bw_bin = bw_bin
        self._client_id = client_id
        self._client_secret = client_secret
        self._master_password = master_password
        self._token: Optional[str] = None
        self._closed = False

    @classmethod
    def from_settings(cls, settings: BackupSettings) -> VaultSession:
        return cls(
            bw_bin=settings.bw_bin,
            client_id=settings.secret("bw_clientid"),
            client_secret=settings.secret("bw_clientsecret"),
            master_password=settings.secret("bw_vault_password"),
        )

    @property
    def token(self) -> str:
        """The unlocked session key.

        Raises:
            AuthenticationError: If the vault has not been unlocked.
        """
        if not self._token:
            raise AuthenticationError("Vault is not unlocked")
        return self._token

    @property
    def closed(self) -> bool:
        """Whether logout has already run."""
        return self._closed

    def login(self) -> str:
        """Log in with the API key and unlock the vault.

        Returns:
            str: The session token.

        Raises:
            AuthenticationError: If either bw call fails. Not retried.
        """
        output.info("Logging in to Bitwarden...")

        result = run(
            [self.bw_bin, "login", "--raw", "--apikey"],
            env=child_env(
                BW_CLIENTID=self._client_id,
                BW_CLIENTSECRET=self._client_secret,
            ),
            capture=True,
        )
        if result.returncode != 0:
            raise AuthenticationError(
                f"bw login exited with status {result.returncode}"
            )

        result = run(
            [self.bw_bin, "unlock", "--raw", "--passwordenv", "BW_VAULT_PASSWORD"],
            env=child_env(BW_VAULT_PASSWORD=self._master_password),
            capture=True,
        )
        if result.returncode != 0:
            raise AuthenticationError(
                f"bw unlock exited with status {result.returncode}"
            )

        token = (result.stdout or "").strip()
        if not token:
            raise AuthenticationError("bw unlock returned an empty session key")

        self._token = token
        output.success("Logged in to Bitwarden.")
        return token

    def is_logged_in(self) -> bool:
        """Ask bw whether a login is currently active."""
        return run([self.bw_bin, "login", "--check"], quiet=True).returncode == 0

    def logout(self, suppress_errors: bool = False) -> None:
        """Log out if logged in. Runs at most once.

        Args:
            suppress_errors: Log a failed logout instead of raising; used
                while another failure is already on its way out.

        Raises:
            CleanupError: If logout fails and errors are not suppressed.
            TerminatedError: If a termination signal arrives during cleanup;
                never treated as a logout failure.
        """
        if self._closed:
            return
        self._closed = True
        self._token = None

        output.info("\nCleaning up...")

        try:
            if not self.is_logged_in():
                output.success("Already logged out of Bitwarden.")
                return

            result = run([self.bw_bin, "logout"], capture=True)
            if result.returncode != 0:
                detail = (result.stdout or "").strip()
                raise CleanupError(f"Failed to log out of Bitwarden: {detail}.")
        except (CleanupError, DependencyError) as exc:
            if not suppress_errors:
                raise
            logger.error("%s", exc)
            return

        output.success("Logged out of Bitwarden.")

    def __enter__(self) -> VaultSession:
        try:
            self.login()
        except BaseException:
            self.logout(suppress_errors=True)
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.logout(suppress_errors=exc_type is not None)
        return False
