"""JSON output utilities for tokeneater."""

from __future__ import annotations

import sys

import msgspec

from tokeneater.errors import SyncError

__all__ = [
    "output_json",
    "output_json_pretty",
    "output_json_error",
    "error_payload",
]


def output_json(data: object) -> None:
    """Output data as JSON to stdout.

    Args:
        data: Any msgspec-serializable object (Struct, dict, list, etc.)
    """
    json_bytes = msgspec.json.encode(data)
    sys.stdout.buffer.write(json_bytes)
    sys.stdout.buffer.write(b"\n")


def output_json_pretty(data: object, indent: int = 2) -> None:
    """Output data as pretty-printed JSON to stdout."""
    json_bytes = msgspec.json.format(msgspec.json.encode(data), indent=indent)
    sys.stdout.buffer.write(json_bytes)
    sys.stdout.buffer.write(b"\n")
    sys.stdout.flush()


def error_payload(error: SyncError) -> dict:
    """Standard error envelope for JSON output."""
    data = {
        "message": error.message,
        "kind": error.kind.value,
        "severity": error.severity.value,
        "timestamp": error.timestamp.isoformat(),
    }
    if error.status_code is not None:
        data["status_code"] = error.status_code
    if error.remediation:
        data["remediation"] = error.remediation
    return {"error": data}


def output_json_error(error: SyncError, indent: int = 2) -> None:
    """Output an error in standardized JSON format."""
    output_json_pretty(error_payload(error), indent=indent)
