"""Threshold notifications with edge-triggered escalation and recovery.

Each metric keeps its last announced level in a LevelStore. An alert is
emitted only when the level rises, or when it falls all the way back to
green; any other change is recorded silently.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from datetime import UTC
from datetime import datetime
from enum import StrEnum

import msgspec
from rich.console import Console

from tokeneater.config.levels import LevelStore
from tokeneater.models import MetricID
from tokeneater.models import PacingZone
from tokeneater.models import Thresholds
from tokeneater.models import UsageBucket
from tokeneater.models import UsageLevel
from tokeneater.models import UsageSnapshot
from tokeneater.models import format_reset_countdown

logger = logging.getLogger(__name__)

LEVEL_ICONS = {
    UsageLevel.GREEN: "\U0001f7e2",
    UsageLevel.ORANGE: "\u26a0\ufe0f",
    UsageLevel.RED: "\U0001f534",
}


class AlertKind(StrEnum):
    ESCALATION = "escalation"
    RECOVERY = "recovery"
    TEST = "test"


class Alert(msgspec.Struct, frozen=True):
    """A notification to show the user."""

    kind: AlertKind
    metric: MetricID | None
    level: UsageLevel
    percent: int
    title: str
    body: str


def level_for(percent: int, thresholds: Thresholds) -> UsageLevel:
    """Classify a percentage against warning/critical thresholds."""
    if percent >= thresholds.critical_percent:
        return UsageLevel.RED
    if percent >= thresholds.warning_percent:
        return UsageLevel.ORANGE
    return UsageLevel.GREEN


def _format_time(moment: datetime) -> str:
    return moment.astimezone().strftime("%H:%M")


def _format_date_time(moment: datetime) -> str:
    return moment.astimezone().strftime("%a %b %d, %H:%M")


def escalation_body(
    metric: MetricID,
    level: UsageLevel,
    resets_at: datetime | None,
    pacing_zone: PacingZone | None,
    thresholds: Thresholds,
    now: datetime | None = None,
) -> str:
    """Body text for an orange or red alert."""
    now = now or datetime.now(UTC)
    if level == UsageLevel.GREEN:
        return ""
    if resets_at is None or resets_at <= now:
        if level == UsageLevel.ORANGE:
            return f"You've passed {thresholds.warning_percent}% of your limit."
        return "Limit almost reached. Slow down or wait for the reset."

    countdown = format_reset_countdown(resets_at - now)
    if metric.is_session:
        time = _format_time(resets_at)
        if level == UsageLevel.RED:
            return f"Almost at the limit. Resets in {countdown} ({time})."
        match pacing_zone or PacingZone.ON_TRACK:
            case PacingZone.CHILL:
                return f"Plenty of room this week. Session resets in {countdown} ({time})."
            case PacingZone.ON_TRACK:
                return f"Keep an eye on it. Session resets in {countdown} ({time})."
            case PacingZone.HOT:
                return (
                    f"You're burning fast this week. "
                    f"Session resets in {countdown} ({time})."
                )

    date_time = _format_date_time(resets_at)
    if level == UsageLevel.RED:
        return f"Weekly limit almost reached. Resets {date_time}."
    return f"Pace yourself. Weekly usage resets {date_time}."


def recovery_body(
    metric: MetricID,
    resets_at: datetime | None,
    now: datetime | None = None,
) -> str:
    """Body text for a back-to-green alert."""
    now = now or datetime.now(UTC)
    if resets_at is None or resets_at <= now:
        return "Usage is back to normal."
    if metric.is_session:
        return f"Back in the green. Next session reset at {_format_time(resets_at)}."
    return f"Back in the green. Weekly reset {_format_date_time(resets_at)}."


class Notifier(ABC):
    """Delivers alerts to the user."""

    @abstractmethod
    def send(self, alert: Alert) -> None:
        ...


class ConsoleNotifier(Notifier):
    """Print alerts to the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def send(self, alert: Alert) -> None:
        self.console.print(f"[bold]{alert.title}[/bold]")
        if alert.body:
            self.console.print(f"  {alert.body}", style="dim")


class CallbackNotifier(Notifier):
    """Forward alerts to a callable (desktop notifications, webhooks, ...)."""

    def __init__(self, callback: Callable[[Alert], None]) -> None:
        self.callback = callback

    def send(self, alert: Alert) -> None:
        self.callback(alert)


class MemoryNotifier(Notifier):
    """Record alerts in order."""

    def __init__(self) -> None:
        self.alerts: list[Alert] = []

    def send(self, alert: Alert) -> None:
        self.alerts.append(alert)


class NotificationEngine:
    """Per-metric level classifier with edge-triggered alerts."""

    METRICS = (MetricID.FIVE_HOUR, MetricID.SEVEN_DAY, MetricID.SEVEN_DAY_SONNET)

    def __init__(self, levels: LevelStore, notifier: Notifier) -> None:
        self.levels = levels
        self.notifier = notifier

    def check(
        self,
        metric: MetricID,
        bucket: UsageBucket,
        thresholds: Thresholds,
        pacing_zone: PacingZone | None = None,
        now: datetime | None = None,
    ) -> Alert | None:
        """Evaluate one metric, persist its level and return any alert."""
        percent = bucket.percent()
        previous = self.levels.get(metric)
        current = level_for(percent, thresholds)

        if current == previous:
            return None
        try:
            self.levels.set(metric, current)
        except OSError as e:
            logger.error("Cannot save notification level: %s", e)
        logger.debug("Level %s: %s -> %s", metric, previous.name, current.name)

        if current > previous:
            icon = LEVEL_ICONS[current]
            return Alert(
                kind=AlertKind.ESCALATION,
                metric=metric,
                level=current,
                percent=percent,
                title=f"{icon} {metric.label} — {percent}%",
                body=escalation_body(
                    metric, current, bucket.resets_at, pacing_zone, thresholds, now
                ),
            )

        if current == UsageLevel.GREEN:
            icon = LEVEL_ICONS[UsageLevel.GREEN]
            return Alert(
                kind=AlertKind.RECOVERY,
                metric=metric,
                level=current,
                percent=percent,
                title=f"{icon} {metric.label} — {percent}%",
                body=recovery_body(metric, bucket.resets_at, now),
            )

        # Partial de-escalation (red -> orange) is silent
        return None

    def evaluate(
        self,
        snapshot: UsageSnapshot,
        thresholds: Thresholds,
        pacing_zone: PacingZone | None = None,
        now: datetime | None = None,
    ) -> list[Alert]:
        """Evaluate every notified metric and send the resulting alerts.

        Metrics absent from the snapshot keep their last level. Only the
        session metric uses the pacing zone.
        """
        alerts = []
        for metric in self.METRICS:
            bucket = getattr(snapshot, metric.value)
            if bucket is None:
                continue
            zone = pacing_zone if metric.is_session else None
            alert = self.check(metric, bucket, thresholds, zone, now)
            if alert is not None:
                alerts.append(alert)

        for alert in alerts:
            self.notifier.send(alert)
        return alerts

    def send_test(self) -> Alert:
        """Send a sample alert so the user can check delivery."""
        alert = Alert(
            kind=AlertKind.TEST,
            metric=None,
            level=UsageLevel.GREEN,
            percent=0,
            title="TokenEater",
            body="Notifications are working.",
        )
        self.notifier.send(alert)
        return alert

    def reset(self) -> None:
        """Forget every recorded level."""
        self.levels.clear()
