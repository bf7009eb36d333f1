"""Credential sources for tokeneater."""

from tokeneater.auth.base import (
    ChainedCredentialSource,
    CredentialRead,
    CredentialSource,
    MemoryCredentialSource,
    ReadStatus,
    parse_claude_secret,
)
from tokeneater.auth.file import CredentialsFileSource
from tokeneater.auth.keyring import KEYRING_SERVICE, KeyringCredentialSource


def default_credential_source(
    silent_timeout: float | None = None,
) -> CredentialSource:
    """Keyring first, then the Claude CLI credentials file."""
    keyring_source = (
        KeyringCredentialSource()
        if silent_timeout is None
        else KeyringCredentialSource(silent_timeout=silent_timeout)
    )
    return ChainedCredentialSource([keyring_source, CredentialsFileSource()])


__all__ = [
    "CredentialRead",
    "ReadStatus",
    "CredentialSource",
    "ChainedCredentialSource",
    "MemoryCredentialSource",
    "KeyringCredentialSource",
    "CredentialsFileSource",
    "KEYRING_SERVICE",
    "default_credential_source",
    "parse_claude_secret",
]
