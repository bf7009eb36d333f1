"""Data models for tokeneater.

Defines the normalized structures shared by the sync owner and every
reader process: usage buckets, snapshots, the cached state written to the
shared store, and the derived pacing/notification types.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from datetime import timedelta
from enum import IntEnum
from enum import StrEnum

import msgspec


class UsageBucket(msgspec.Struct, frozen=True):
    """One named usage metric (e.g., 5-hour session, 7-day weekly)."""

    utilization: float  # 0-100 percentage used
    resets_at: datetime | None = None  # When the window resets (UTC)

    def percent(self) -> int:
        """Return utilization truncated to a whole percentage."""
        return int(self.utilization)

    def time_until_reset(self, now: datetime | None = None) -> timedelta | None:
        """Return time remaining until reset."""
        if self.resets_at is None:
            return None
        now = now or datetime.now(self.resets_at.tzinfo)
        return max(timedelta(0), self.resets_at - now)


# Wire keys, in display order
BUCKET_KEYS: tuple[str, ...] = (
    "five_hour",
    "seven_day",
    "seven_day_sonnet",
    "seven_day_opus",
    "seven_day_oauth_apps",
    "seven_day_cowork",
)


class UsageSnapshot(msgspec.Struct, frozen=True):
    """Complete set of buckets from one fetch."""

    five_hour: UsageBucket | None = None  # Short window (session)
    seven_day: UsageBucket | None = None  # Long window (all models)
    seven_day_sonnet: UsageBucket | None = None  # Long window, one model family
    seven_day_opus: UsageBucket | None = None
    seven_day_oauth_apps: UsageBucket | None = None
    seven_day_cowork: UsageBucket | None = None

    def buckets(self) -> dict[str, UsageBucket]:
        """Return the present buckets keyed by wire name."""
        result = {}
        for key in BUCKET_KEYS:
            bucket = getattr(self, key)
            if bucket is not None:
                result[key] = bucket
        return result

    def is_empty(self) -> bool:
        """Check if no bucket could be decoded."""
        return not self.buckets()


class CachedState(msgspec.Struct, frozen=True):
    """Last good snapshot and when it was fetched."""

    snapshot: UsageSnapshot
    fetched_at: datetime

    def age(self, now: datetime | None = None) -> timedelta:
        """Return how long ago the snapshot was fetched."""
        now = now or datetime.now(self.fetched_at.tzinfo)
        return now - self.fetched_at

    def is_stale(self, freshness: timedelta, now: datetime | None = None) -> bool:
        """Check if the snapshot is older than the freshness budget."""
        return self.age(now) > freshness


class TokenCredential(msgspec.Struct, frozen=True, tag="token"):
    """OAuth bearer token managed by an external process."""

    access_token: str

    @property
    def fingerprint(self) -> str:
        """Short, non-reversible identifier safe for logs."""
        return hashlib.sha256(self.access_token.encode()).hexdigest()[:8]

    def to_headers(self) -> dict[str, str]:
        """Return Authorization header."""
        return {"Authorization": f"Bearer {self.access_token}"}


# Tagged union of credential variants; new auth methods join with `|`.
Credential = TokenCredential


class Thresholds(msgspec.Struct, frozen=True):
    """Warning/critical percentages for level classification."""

    warning_percent: int = 60
    critical_percent: int = 85


class ProxyConfig(msgspec.Struct, frozen=True):
    """Optional SOCKS5 passthrough for the usage request."""

    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 1080

    @property
    def url(self) -> str:
        return f"socks5://{self.host}:{self.port}"


class PacingZone(StrEnum):
    """Consumption relative to an even spend over the window."""

    CHILL = "chill"
    ON_TRACK = "on_track"
    HOT = "hot"


class PacingResult(msgspec.Struct, frozen=True):
    """Expected vs. actual consumption for the long window."""

    delta: float  # actual - expected, in percentage points
    expected_usage: float
    actual_usage: float
    zone: PacingZone
    reset_at: datetime | None = None


class UsageLevel(IntEnum):
    """Alert level of a metric; ordered green < orange < red."""

    GREEN = 0
    ORANGE = 1
    RED = 2


class MetricID(StrEnum):
    """Metrics that drive notifications."""

    FIVE_HOUR = "five_hour"
    SEVEN_DAY = "seven_day"
    SEVEN_DAY_SONNET = "seven_day_sonnet"

    @property
    def label(self) -> str:
        match self:
            case MetricID.FIVE_HOUR:
                return "Session"
            case MetricID.SEVEN_DAY:
                return "Weekly"
            case MetricID.SEVEN_DAY_SONNET:
                return "Sonnet"

    @property
    def is_session(self) -> bool:
        return self is MetricID.FIVE_HOUR


class ModelTokenStats(msgspec.Struct, frozen=True):
    """Local token totals for one model family/version."""

    model_name: str
    total_tokens: int


def validate_thresholds(thresholds: Thresholds) -> list[str]:
    """Return list of validation errors, empty if valid."""
    errors = []
    if not 0 < thresholds.warning_percent < thresholds.critical_percent:
        errors.append(
            f"warning {thresholds.warning_percent} must be above 0 and "
            f"below critical {thresholds.critical_percent}"
        )
    if thresholds.critical_percent > 100:
        errors.append(f"critical {thresholds.critical_percent} above 100")
    return errors


def format_reset_countdown(delta: timedelta | None) -> str:
    """Format reset time as countdown string."""
    if delta is None:
        return ""

    total_seconds = int(delta.total_seconds())
    if total_seconds <= 0:
        return "now"

    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60

    if days > 0:
        return f"{days}d {hours}h"
    elif hours > 0:
        return f"{hours}h {minutes}m"
    else:
        return f"{minutes}m"
