"""Pacing: actual consumption against an even spend over the window."""

from __future__ import annotations

from datetime import UTC
from datetime import datetime
from datetime import timedelta

from tokeneater.models import PacingResult
from tokeneater.models import PacingZone
from tokeneater.models import UsageBucket
from tokeneater.models import UsageSnapshot

WINDOW = timedelta(days=7)

# Percentage points either side of expected that still count as on track
ZONE_MARGIN = 10.0


def zone_for_delta(delta: float) -> PacingZone:
    """Classify a delta; exactly +/-ZONE_MARGIN is on track."""
    if delta < -ZONE_MARGIN:
        return PacingZone.CHILL
    if delta > ZONE_MARGIN:
        return PacingZone.HOT
    return PacingZone.ON_TRACK


def pacing_for_bucket(
    bucket: UsageBucket | None,
    now: datetime | None = None,
    window: timedelta = WINDOW,
) -> PacingResult | None:
    """Project expected usage for a bucket whose window ends at resets_at.

    Returns None when the bucket or its reset time is absent.
    """
    if bucket is None or bucket.resets_at is None:
        return None

    now = now or datetime.now(UTC)
    window_start = bucket.resets_at - window
    elapsed = (now - window_start) / window
    elapsed = min(1.0, max(0.0, elapsed))

    expected = elapsed * 100
    delta = bucket.utilization - expected
    return PacingResult(
        delta=delta,
        expected_usage=expected,
        actual_usage=bucket.utilization,
        zone=zone_for_delta(delta),
        reset_at=bucket.resets_at,
    )


def calculate_pacing(
    snapshot: UsageSnapshot | None, now: datetime | None = None
) -> PacingResult | None:
    """Pacing for the 7-day bucket of a snapshot."""
    if snapshot is None:
        return None
    return pacing_for_bucket(snapshot.seven_day, now)
