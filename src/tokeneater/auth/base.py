"""Credential source base classes.

A credential source gives read-only access to a bearer token managed by
another process (the Claude CLI rotates it on its own schedule). Reads
come in two modes: interactive, which may let the OS show an
authorization prompt, and silent, which must never block on one.
"""

from __future__ import annotations

import json
from abc import ABC
from abc import abstractmethod
from enum import StrEnum

import msgspec

from tokeneater.models import Credential
from tokeneater.models import TokenCredential


class ReadStatus(StrEnum):
    """Outcome of a credential read."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    LOCKED = "locked"  # Store needs interactive authorization


class CredentialRead(msgspec.Struct, frozen=True):
    """Result of a credential read."""

    status: ReadStatus
    credential: Credential | None = None
    source: str | None = None  # Which source answered

    @classmethod
    def found(cls, credential: Credential, source: str | None = None) -> CredentialRead:
        return cls(status=ReadStatus.FOUND, credential=credential, source=source)

    @classmethod
    def not_found(cls) -> CredentialRead:
        return cls(status=ReadStatus.NOT_FOUND)

    @classmethod
    def locked(cls, source: str | None = None) -> CredentialRead:
        return cls(status=ReadStatus.LOCKED, source=source)

    @property
    def is_locked(self) -> bool:
        return self.status == ReadStatus.LOCKED


def parse_claude_secret(raw: str | bytes | None) -> Credential | None:
    """Extract the access token from a Claude CLI credential payload.

    Handles two formats:
    1. Claude CLI JSON: {"claudeAiOauth": {"accessToken": "...", ...}}
    2. A bare token string
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    raw = raw.strip()
    if not raw:
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        # Not JSON; accept a single opaque token
        if any(c.isspace() for c in raw):
            return None
        return TokenCredential(access_token=raw)

    if not isinstance(data, dict):
        return None
    oauth = data.get("claudeAiOauth")
    if not isinstance(oauth, dict):
        return None
    token = oauth.get("accessToken")
    if not isinstance(token, str) or not token:
        return None
    return TokenCredential(access_token=token)


class CredentialSource(ABC):
    """Opaque, read-only access to an externally managed credential."""

    name: str = "credential"

    @abstractmethod
    async def read_interactive(self) -> CredentialRead:
        """Read the credential, allowing the OS to prompt the user."""
        ...

    @abstractmethod
    async def read_silent(self) -> CredentialRead:
        """Read the credential without ever blocking on a prompt.

        Returns CredentialRead.locked() when the store needs interactive
        authorization, distinct from not_found().
        """
        ...

    @abstractmethod
    def exists(self) -> bool:
        """Cheap existence check that never touches secret material."""
        ...


class ChainedCredentialSource(CredentialSource):
    """Try several sources in order; the first found credential wins."""

    name = "chain"

    def __init__(self, sources: list[CredentialSource]) -> None:
        self.sources = list(sources)

    @staticmethod
    def _combine(reads: list[CredentialRead]) -> CredentialRead:
        locked = None
        for read in reads:
            if read.status == ReadStatus.FOUND:
                return read
            if read.is_locked and locked is None:
                locked = read
        return locked or CredentialRead.not_found()

    async def read_interactive(self) -> CredentialRead:
        reads = []
        for source in self.sources:
            read = await source.read_interactive()
            if read.status == ReadStatus.FOUND:
                return read
            reads.append(read)
        return self._combine(reads)

    async def read_silent(self) -> CredentialRead:
        reads = []
        for source in self.sources:
            read = await source.read_silent()
            if read.status == ReadStatus.FOUND:
                return read
            reads.append(read)
        return self._combine(reads)

    def exists(self) -> bool:
        return any(source.exists() for source in self.sources)


class MemoryCredentialSource(CredentialSource):
    """Scriptable in-memory source for tests and embedding.

    `silent_locked` makes silent reads report a locked store while
    interactive reads still succeed, like a keychain awaiting unlock.
    """

    name = "memory"

    def __init__(
        self,
        credential: Credential | None = None,
        silent_locked: bool = False,
    ) -> None:
        self.credential = credential
        self.silent_locked = silent_locked
        self.silent_reads = 0
        self.interactive_reads = 0

    def _read(self) -> CredentialRead:
        if self.credential is None:
            return CredentialRead.not_found()
        return CredentialRead.found(self.credential, source=self.name)

    async def read_interactive(self) -> CredentialRead:
        self.interactive_reads += 1
        return self._read()

    async def read_silent(self) -> CredentialRead:
        self.silent_reads += 1
        if self.silent_locked:
            return CredentialRead.locked(source=self.name)
        return self._read()

    def exists(self) -> bool:
        return self.credential is not None
