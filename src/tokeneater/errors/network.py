"""Network error classification utilities.

Turns httpx transport exceptions into NetworkFailure with a readable
message. The underlying cause is kept as __cause__ by the caller.
"""

from __future__ import annotations

import httpx

from tokeneater.errors.types import NetworkFailure


def classify_network_error(error: Exception) -> NetworkFailure:
    """Classify a transport-level exception.

    Args:
        error: Exception raised by httpx while sending the request

    Returns:
        NetworkFailure with a human-readable message
    """
    if isinstance(error, httpx.ConnectTimeout):
        return NetworkFailure("Connection timed out")

    if isinstance(error, httpx.ReadTimeout):
        return NetworkFailure("Request timed out waiting for response")

    if isinstance(error, httpx.WriteTimeout):
        return NetworkFailure("Request timed out while sending data")

    if isinstance(error, httpx.TimeoutException):
        return NetworkFailure("Request timed out")

    if isinstance(error, httpx.ProxyError):
        return NetworkFailure(f"Proxy error: {error}")

    if isinstance(error, httpx.ConnectError):
        message = str(error).lower()
        if "connection refused" in message:
            return NetworkFailure("Connection refused by server")
        elif "ssl" in message or "certificate" in message:
            return NetworkFailure("TLS handshake failed")
        elif (
            "dns" in message
            or "hostname" in message
            or "name or service not known" in message
            or "nodename" in message
        ):
            return NetworkFailure("Could not resolve server address")
        else:
            return NetworkFailure("Failed to connect to server")

    if isinstance(error, httpx.NetworkError):
        return NetworkFailure(f"Network error: {error}")

    # Fallback for unexpected error types
    return NetworkFailure(f"Network error: {error}")


def is_network_error(error: Exception) -> bool:
    """Check if an exception is a transport-level error."""
    return isinstance(error, httpx.TransportError)
