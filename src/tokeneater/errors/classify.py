"""Exception classification for structured error handling."""

from __future__ import annotations

import asyncio

import httpx
import msgspec

from tokeneater.errors.network import classify_network_error
from tokeneater.errors.types import ErrorKind
from tokeneater.errors.types import SyncError
from tokeneater.errors.types import UsageClientError


def classify_exception(e: Exception) -> SyncError:
    """Classify any exception raised during a fetch into a structured error.

    Nothing here is fatal: unknown failures are reported as transient
    network errors so the next tick retries.
    """
    if isinstance(e, UsageClientError):
        return e.to_error()

    # Network errors - httpx specific
    if isinstance(e, httpx.TransportError):
        return classify_network_error(e).to_error()

    if isinstance(e, asyncio.TimeoutError):
        return SyncError.of(ErrorKind.NETWORK_ERROR, "Operation timed out")

    # Parse errors
    if isinstance(e, (msgspec.DecodeError, ValueError)):
        return SyncError.of(
            ErrorKind.MALFORMED_RESPONSE, f"Invalid response format: {e}"
        )

    # Unknown
    return SyncError.of(ErrorKind.NETWORK_ERROR, f"{type(e).__name__}: {e}")
