"""Error handling for tokeneater."""

from tokeneater.errors.classify import classify_exception
from tokeneater.errors.http import error_for_response
from tokeneater.errors.http import extract_error_message
from tokeneater.errors.messages import default_message
from tokeneater.errors.messages import remediation_for
from tokeneater.errors.network import classify_network_error
from tokeneater.errors.network import is_network_error
from tokeneater.errors.types import AuthFailureError
from tokeneater.errors.types import ErrorKind
from tokeneater.errors.types import ErrorSeverity
from tokeneater.errors.types import HTTPStatusFailure
from tokeneater.errors.types import MalformedResponseError
from tokeneater.errors.types import NetworkFailure
from tokeneater.errors.types import SyncError
from tokeneater.errors.types import UsageClientError

__all__ = [
    # Core types
    "ErrorKind",
    "ErrorSeverity",
    "SyncError",
    # Client exceptions
    "UsageClientError",
    "AuthFailureError",
    "HTTPStatusFailure",
    "NetworkFailure",
    "MalformedResponseError",
    # Classification functions
    "classify_exception",
    "classify_network_error",
    "error_for_response",
    "extract_error_message",
    "is_network_error",
    # Message templates
    "default_message",
    "remediation_for",
]
