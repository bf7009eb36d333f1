"""Pull-based display-surface entries.

A display surface (widget, status bar, prompt segment) polls on its own
schedule and only ever reads the shared store. Staleness is derived here
from the snapshot age; it is never stored.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from collections.abc import Callable
from datetime import UTC
from datetime import datetime
from datetime import timedelta

import msgspec

from tokeneater.config.settings import DEFAULT_STALE_AFTER
from tokeneater.config.settings import DEFAULT_TIMELINE_INTERVAL
from tokeneater.config.shared import SharedStateStore
from tokeneater.core.pacing import calculate_pacing
from tokeneater.models import PacingResult
from tokeneater.models import UsageSnapshot

ERROR_NOT_CONFIGURED = "not configured"
ERROR_NO_DATA = "no data"


class TimelineEntry(msgspec.Struct, frozen=True):
    """What a display surface renders at one point in time."""

    date: datetime
    snapshot: UsageSnapshot | None = None
    fetched_at: datetime | None = None
    is_stale: bool = False
    error: str | None = None
    pacing: PacingResult | None = None


class TimelineProvider:
    """Builds entries from the shared store."""

    def __init__(
        self,
        store: SharedStateStore,
        freshness: timedelta = timedelta(seconds=DEFAULT_STALE_AFTER),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.freshness = freshness
        self.clock = clock or (lambda: datetime.now(UTC))

    def latest_entry(self) -> TimelineEntry:
        now = self.clock()
        document = self.store.load()
        cached = document.cached

        if cached is None:
            error = ERROR_NO_DATA if document.credential is not None else ERROR_NOT_CONFIGURED
            return TimelineEntry(date=now, error=error)

        return TimelineEntry(
            date=now,
            snapshot=cached.snapshot,
            fetched_at=cached.fetched_at,
            is_stale=cached.is_stale(self.freshness, now),
            error=None if document.credential is not None else ERROR_NOT_CONFIGURED,
            pacing=calculate_pacing(cached.snapshot, now),
        )

    async def entries(
        self, interval: float = DEFAULT_TIMELINE_INTERVAL
    ) -> AsyncIterator[TimelineEntry]:
        """Yield a fresh entry now and then every `interval` seconds."""
        while True:
            yield self.latest_entry()
            await asyncio.sleep(interval)
