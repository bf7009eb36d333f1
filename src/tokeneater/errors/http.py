"""HTTP error classification and handling utilities.

This module maps usage-endpoint responses onto the client exception
hierarchy in errors/types.py.
"""

from __future__ import annotations

import httpx

from tokeneater.errors.types import AuthFailureError
from tokeneater.errors.types import HTTPStatusFailure
from tokeneater.errors.types import UsageClientError

AUTH_FAILURE_STATUSES = frozenset({401, 403})


def extract_error_message(response: httpx.Response) -> str:
    """Extract a meaningful error message from an HTTP response.

    Args:
        response: HTTP response with error status

    Returns:
        Extracted error message
    """
    status = response.status_code

    # Try JSON response first
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        # Common error field names
        for key in ("error", "message", "detail", "error_description"):
            if key in body:
                value = body[key]
                if isinstance(value, str):
                    return value
                elif isinstance(value, dict):
                    # Some APIs nest the message
                    for nested_key in ("message", "description"):
                        if nested_key in value:
                            return str(value[nested_key])

    # Fall back to text content
    text = response.text.strip()
    if text and len(text) < 200:
        return text

    # Default to status code
    return f"HTTP {status}"


def error_for_response(response: httpx.Response) -> UsageClientError | None:
    """Map a non-2xx response to a client error.

    Returns:
        None for 2xx responses, otherwise the error to raise
    """
    status = response.status_code
    if 200 <= status < 300:
        return None

    detail = extract_error_message(response)
    if status in AUTH_FAILURE_STATUSES:
        return AuthFailureError(f"HTTP {status}: {detail}", status_code=status)
    return HTTPStatusFailure(status, detail)
