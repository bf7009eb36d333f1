"""Error message templates with remediation."""

from __future__ import annotations

from tokeneater.errors.types import ErrorKind

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NO_CREDENTIAL: "No Claude credentials found.",
    ErrorKind.VAULT_LOCKED: "The credential store is locked.",
    ErrorKind.AUTH_FAILURE: "Claude token expired or was rejected.",
    ErrorKind.NETWORK_ERROR: "Could not reach the usage endpoint.",
    ErrorKind.HTTP_ERROR: "The usage endpoint returned an unexpected status.",
    ErrorKind.MALFORMED_RESPONSE: "The usage response contained no usable data.",
}

REMEDIATIONS: dict[ErrorKind, str] = {
    ErrorKind.NO_CREDENTIAL: (
        "Sign in with the Claude CLI, then run '[cyan]tokeneater login[/cyan]'."
    ),
    ErrorKind.VAULT_LOCKED: (
        "Unlock your keychain; the next sync will pick the token up automatically."
    ),
    ErrorKind.AUTH_FAILURE: (
        "Run any Claude CLI command to refresh the token. "
        "tokeneater retries as soon as the stored token changes."
    ),
    ErrorKind.NETWORK_ERROR: "Check your internet connection or proxy settings.",
    ErrorKind.HTTP_ERROR: "The service may be experiencing issues. Try again later.",
    ErrorKind.MALFORMED_RESPONSE: (
        "Your plan may not expose usage data. Try again later."
    ),
}


def default_message(kind: ErrorKind) -> str:
    """Get the generic message for an error kind."""
    return ERROR_MESSAGES[kind]


def remediation_for(kind: ErrorKind) -> str | None:
    """Get remediation hint for an error kind."""
    return REMEDIATIONS.get(kind)
