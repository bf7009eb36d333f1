"""tokeneater: Claude usage sync with offline resilience and threshold alerts."""

from __future__ import annotations

__version__ = "0.1.0"

from tokeneater.models import BUCKET_KEYS
from tokeneater.models import CachedState
from tokeneater.models import Credential
from tokeneater.models import MetricID
from tokeneater.models import PacingResult
from tokeneater.models import PacingZone
from tokeneater.models import Thresholds
from tokeneater.models import TokenCredential
from tokeneater.models import UsageBucket
from tokeneater.models import UsageLevel
from tokeneater.models import UsageSnapshot
from tokeneater.models import format_reset_countdown

__all__ = [
    "__version__",
    "BUCKET_KEYS",
    "UsageBucket",
    "UsageSnapshot",
    "CachedState",
    "Credential",
    "TokenCredential",
    "Thresholds",
    "PacingZone",
    "PacingResult",
    "UsageLevel",
    "MetricID",
    "format_reset_countdown",
]


def main() -> None:
    """Entry point for the tokeneater CLI."""
    from tokeneater.cli.app import run_app

    run_app()
