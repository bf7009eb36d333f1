"""System keyring credential source.

The Claude CLI keeps its OAuth credential in the OS secure store under a
fixed service name. We only ever read it; rotation is the CLI's job.
"""

from __future__ import annotations

import asyncio
import getpass
import logging
import shutil
import subprocess
import sys

import keyring
from keyring.errors import KeyringError
from keyring.errors import KeyringLocked

from tokeneater.auth.base import CredentialRead
from tokeneater.auth.base import CredentialSource
from tokeneater.auth.base import parse_claude_secret
from tokeneater.config.settings import DEFAULT_SILENT_READ_TIMEOUT

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "Claude Code-credentials"


class KeyringCredentialSource(CredentialSource):
    """Read the Claude CLI credential from the system keyring."""

    name = "keyring"

    def __init__(
        self,
        service: str = KEYRING_SERVICE,
        username: str | None = None,
        silent_timeout: float = DEFAULT_SILENT_READ_TIMEOUT,
    ) -> None:
        self.service = service
        self.username = username or getpass.getuser()
        self.silent_timeout = silent_timeout
        # Lookup still blocked in a worker thread (e.g., on an unlock prompt)
        self._pending: asyncio.Future | None = None

    def _lookup(self) -> CredentialRead:
        try:
            secret = keyring.get_password(self.service, self.username)
        except KeyringLocked:
            return CredentialRead.locked(source=self.name)
        except KeyringError as e:
            logger.debug("Keyring unavailable: %s", e)
            return CredentialRead.not_found()
        except Exception as e:
            logger.debug("Keyring backend failed: %s", e)
            return CredentialRead.not_found()

        credential = parse_claude_secret(secret)
        if credential is None:
            return CredentialRead.not_found()
        return CredentialRead.found(credential, source=self.name)

    async def read_interactive(self) -> CredentialRead:
        return await asyncio.to_thread(self._lookup)

    async def read_silent(self) -> CredentialRead:
        """Read without waiting on any prompt.

        A lookup that does not finish within `silent_timeout` is treated as
        a locked store. It keeps running in its thread; later silent reads
        report locked until it completes rather than piling up threads.
        """
        if self._pending is not None and not self._pending.done():
            return CredentialRead.locked(source=self.name)

        self._pending = asyncio.ensure_future(asyncio.to_thread(self._lookup))
        try:
            return await asyncio.wait_for(
                asyncio.shield(self._pending), timeout=self.silent_timeout
            )
        except TimeoutError:
            logger.debug("Silent keyring read timed out after %.1fs", self.silent_timeout)
            return CredentialRead.locked(source=self.name)

    def exists(self) -> bool:
        """Check for the keychain item without reading its secret.

        Only macOS exposes item attributes without authorization; other
        backends report False.
        """
        if sys.platform != "darwin" or not shutil.which("security"):
            return False
        try:
            result = subprocess.run(
                ["security", "find-generic-password", "-s", self.service],
                capture_output=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0
