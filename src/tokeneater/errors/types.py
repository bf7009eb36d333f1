"""Error types and classifications."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

import msgspec


class ErrorKind(StrEnum):
    """Failure kinds surfaced by a sync attempt."""

    NO_CREDENTIAL = "no_credential"
    VAULT_LOCKED = "vault_locked"  # Silent read blocked by interactive auth
    AUTH_FAILURE = "auth_failure"  # Credential rejected by the server
    NETWORK_ERROR = "network_error"  # Transport failure
    HTTP_ERROR = "http_error"  # Unexpected status
    MALFORMED_RESPONSE = "malformed_response"  # Zero decodable buckets


class ErrorSeverity(StrEnum):
    """How long an error persists."""

    TRANSIENT = "transient"  # Retried on the next poll tick
    STICKY = "sticky"  # Holds until the credential value changes


KIND_SEVERITY: dict[ErrorKind, ErrorSeverity] = {
    ErrorKind.NO_CREDENTIAL: ErrorSeverity.STICKY,
    ErrorKind.VAULT_LOCKED: ErrorSeverity.TRANSIENT,
    ErrorKind.AUTH_FAILURE: ErrorSeverity.STICKY,
    ErrorKind.NETWORK_ERROR: ErrorSeverity.TRANSIENT,
    ErrorKind.HTTP_ERROR: ErrorSeverity.TRANSIENT,
    ErrorKind.MALFORMED_RESPONSE: ErrorSeverity.TRANSIENT,
}


class SyncError(msgspec.Struct, frozen=True):
    """Structured error with kind and remediation."""

    message: str
    kind: ErrorKind
    severity: ErrorSeverity
    status_code: int | None = None
    remediation: str | None = None
    timestamp: datetime = msgspec.field(
        default_factory=lambda: datetime.now().astimezone()
    )

    @classmethod
    def of(
        cls,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> SyncError:
        """Build an error with the default severity and remediation for kind."""
        from tokeneater.errors.messages import remediation_for

        return cls(
            message=message,
            kind=kind,
            severity=KIND_SEVERITY[kind],
            status_code=status_code,
            remediation=remediation_for(kind),
        )

    @property
    def is_transient(self) -> bool:
        return self.severity == ErrorSeverity.TRANSIENT


class UsageClientError(Exception):
    """Base class for failures raised by a usage client."""

    kind: ErrorKind = ErrorKind.NETWORK_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_error(self) -> SyncError:
        return SyncError.of(self.kind, self.message, status_code=self.status_code)


class AuthFailureError(UsageClientError):
    """401/403: the credential was actively rejected."""

    kind = ErrorKind.AUTH_FAILURE


class HTTPStatusFailure(UsageClientError):
    """Any other non-2xx status."""

    kind = ErrorKind.HTTP_ERROR

    def __init__(self, status_code: int, detail: str | None = None) -> None:
        message = f"HTTP {status_code}: {detail}" if detail else f"HTTP {status_code}"
        super().__init__(message, status_code=status_code)


class NetworkFailure(UsageClientError):
    """DNS, TLS, timeout, proxy or connection failure."""

    kind = ErrorKind.NETWORK_ERROR


class MalformedResponseError(UsageClientError):
    """2xx payload with no decodable bucket."""

    kind = ErrorKind.MALFORMED_RESPONSE
