"""Rich-based rendering utilities for tokeneater."""

from __future__ import annotations

from datetime import UTC
from datetime import datetime
from datetime import timedelta

from rich.console import Console
from rich.console import ConsoleOptions
from rich.console import RenderResult
from rich.table import Table
from rich.text import Text

from tokeneater.core.notifications import level_for
from tokeneater.errors import SyncError
from tokeneater.models import ModelTokenStats
from tokeneater.models import PacingResult
from tokeneater.models import PacingZone
from tokeneater.models import Thresholds
from tokeneater.models import UsageBucket
from tokeneater.models import UsageLevel
from tokeneater.models import UsageSnapshot
from tokeneater.models import format_reset_countdown

BUCKET_LABELS = {
    "five_hour": "Session (5h)",
    "seven_day": "All Models",
    "seven_day_sonnet": "Sonnet",
    "seven_day_opus": "Opus",
    "seven_day_oauth_apps": "OAuth Apps",
    "seven_day_cowork": "Cowork",
}

LEVEL_COLORS = {
    UsageLevel.GREEN: "green",
    UsageLevel.ORANGE: "yellow",
    UsageLevel.RED: "red",
}

ZONE_STYLES = {
    PacingZone.CHILL: ("chill", "green"),
    PacingZone.ON_TRACK: ("on track", "yellow"),
    PacingZone.HOT: ("hot", "red"),
}


def render_usage_bar(
    utilization: float,
    width: int = 20,
    color: str | None = None,
) -> Text:
    """Render a usage progress bar.

    Args:
        utilization: Usage percentage (0-100)
        width: Bar width in characters
        color: Optional color override

    Returns:
        Rich Text with the progress bar
    """
    filled = int(utilization) * width // 100
    bar = "█" * filled + "░" * (width - filled)

    text = Text()
    text.append(bar, style=color or "default")
    return text


def format_bucket(
    label: str,
    bucket: UsageBucket,
    thresholds: Thresholds,
    now: datetime | None = None,
) -> Text:
    """Format one bucket as a bar line."""
    color = LEVEL_COLORS[level_for(bucket.percent(), thresholds)]

    text = Text()
    text.append(f"{label:<14} ", style="bold")
    text.append_text(render_usage_bar(bucket.utilization, color=color))
    text.append(f" {bucket.percent():>3}%", style=color)

    time_until = bucket.time_until_reset(now)
    if time_until is not None:
        text.append(f"  resets in {format_reset_countdown(time_until)}", style="dim")
    return text


def format_pacing(pacing: PacingResult) -> Text:
    label, color = ZONE_STYLES[pacing.zone]
    text = Text()
    text.append("Pacing         ", style="bold")
    text.append(label, style=f"bold {color}")
    text.append(
        f"  {pacing.delta:+.0f} pts vs. expected {pacing.expected_usage:.0f}%",
        style="dim",
    )
    return text


def format_age(age: timedelta) -> str:
    seconds = int(age.total_seconds())
    if seconds < 60:
        return "just now"
    return f"{format_reset_countdown(age)} ago"


def format_tokens(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


class UsageDisplay:
    """Rich renderable for a snapshot with its freshness and pacing."""

    def __init__(
        self,
        snapshot: UsageSnapshot,
        thresholds: Thresholds | None = None,
        fetched_at: datetime | None = None,
        is_stale: bool = False,
        pacing: PacingResult | None = None,
        model_stats: list[ModelTokenStats] | None = None,
        now: datetime | None = None,
    ):
        self.snapshot = snapshot
        self.thresholds = thresholds or Thresholds()
        self.fetched_at = fetched_at
        self.is_stale = is_stale
        self.pacing = pacing
        self.model_stats = model_stats or []
        self.now = now or datetime.now(UTC)

    def __rich_console__(
        self, console: Console, options: ConsoleOptions
    ) -> RenderResult:
        header = Text("Claude usage", style="bold")
        if self.fetched_at is not None:
            header.append(f"  updated {format_age(self.now - self.fetched_at)}", style="dim")
        if self.is_stale:
            header.append("  (stale)", style="dim yellow")
        yield header
        yield Text("━" * 60, style="dim")

        buckets = self.snapshot.buckets()
        if session := buckets.pop("five_hour", None):
            yield format_bucket(BUCKET_LABELS["five_hour"], session, self.thresholds, self.now)
            if buckets:
                yield Text()

        if buckets:
            yield Text("Weekly", style="bold")
            for key, bucket in buckets.items():
                yield format_bucket(
                    f"  {BUCKET_LABELS[key]}", bucket, self.thresholds, self.now
                )

        if self.pacing is not None:
            yield Text()
            yield format_pacing(self.pacing)

        if self.model_stats:
            yield Text()
            table = Table.grid(padding=(0, 2))
            table.add_column(min_width=14)
            table.add_column(justify="right")
            for stat in self.model_stats:
                table.add_row(
                    Text(f"  {stat.model_name}"),
                    Text(format_tokens(stat.total_tokens), style="dim"),
                )
            yield Text("Local tokens", style="bold")
            yield table


def format_error(error: SyncError) -> Text:
    """Format a sync error with its remediation hint."""
    text = Text()
    style = "yellow" if error.is_transient else "red"
    text.append(f"{error.message}", style=style)
    if error.remediation:
        text.append("\n")
        text.append_text(Text.from_markup(error.remediation, style="dim"))
    return text
