"""Claude CLI credentials file source."""

from __future__ import annotations

import logging
import stat
from pathlib import Path

from tokeneater.auth.base import CredentialRead
from tokeneater.auth.base import CredentialSource
from tokeneater.auth.base import parse_claude_secret
from tokeneater.config.paths import claude_credentials_file

logger = logging.getLogger(__name__)


class CredentialsFileSource(CredentialSource):
    """Read `~/.claude/.credentials.json` as written by the Claude CLI.

    There is no UI in either mode, so silent and interactive reads are the
    same. A file readable by group or others is refused.
    """

    name = "file"

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or claude_credentials_file()

    def _read(self) -> CredentialRead:
        try:
            mode = self.path.stat().st_mode
        except FileNotFoundError:
            return CredentialRead.not_found()
        except PermissionError:
            return CredentialRead.locked(source=self.name)

        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            logger.warning(
                "Refusing credentials file %s with insecure permissions %o",
                self.path,
                stat.S_IMODE(mode),
            )
            return CredentialRead.locked(source=self.name)

        try:
            content = self.path.read_bytes()
        except PermissionError:
            return CredentialRead.locked(source=self.name)
        except OSError as e:
            logger.debug("Cannot read %s: %s", self.path, e)
            return CredentialRead.not_found()

        credential = parse_claude_secret(content)
        if credential is None:
            return CredentialRead.not_found()
        return CredentialRead.found(credential, source=self.name)

    async def read_interactive(self) -> CredentialRead:
        return self._read()

    async def read_silent(self) -> CredentialRead:
        return self._read()

    def exists(self) -> bool:
        return self.path.exists()
