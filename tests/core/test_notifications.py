"""Tests for core/notifications.py."""

from __future__ import annotations

from datetime import timedelta
from io import StringIO

import pytest
from rich.console import Console

from tokeneater.config.levels import FileLevelStore
from tokeneater.config.levels import MemoryLevelStore
from tokeneater.core.notifications import AlertKind
from tokeneater.core.notifications import CallbackNotifier
from tokeneater.core.notifications import ConsoleNotifier
from tokeneater.core.notifications import MemoryNotifier
from tokeneater.core.notifications import NotificationEngine
from tokeneater.core.notifications import escalation_body
from tokeneater.core.notifications import level_for
from tokeneater.core.notifications import recovery_body
from tokeneater.models import MetricID
from tokeneater.models import PacingZone
from tokeneater.models import Thresholds
from tokeneater.models import UsageBucket
from tokeneater.models import UsageLevel
from tokeneater.models import UsageSnapshot


def session(percent: float, resets_at=None) -> UsageSnapshot:
    return UsageSnapshot(five_hour=UsageBucket(utilization=percent, resets_at=resets_at))


class TestLevelFor:
    """Tests for level classification."""

    @pytest.mark.parametrize(
        "percent,level",
        [
            (0, UsageLevel.GREEN),
            (59, UsageLevel.GREEN),
            (60, UsageLevel.ORANGE),
            (84, UsageLevel.ORANGE),
            (85, UsageLevel.RED),
            (100, UsageLevel.RED),
        ],
    )
    def test_default_thresholds(self, percent, level):
        assert level_for(percent, Thresholds()) == level


class TestEdgeTriggering:
    """Alerts fire on transitions only."""

    def test_sequence_yields_three_alerts(self, utc_now):
        """[10, 10, 65, 65, 90, 40] -> orange, red, recovery."""
        notifier = MemoryNotifier()
        engine = NotificationEngine(MemoryLevelStore(), notifier)

        for percent in [10, 10, 65, 65, 90, 40]:
            engine.evaluate(session(percent), Thresholds(), now=utc_now)

        assert [(a.kind, a.level) for a in notifier.alerts] == [
            (AlertKind.ESCALATION, UsageLevel.ORANGE),
            (AlertKind.ESCALATION, UsageLevel.RED),
            (AlertKind.RECOVERY, UsageLevel.GREEN),
        ]

    def test_partial_deescalation_is_silent(self, utc_now):
        levels = MemoryLevelStore()
        engine = NotificationEngine(levels, MemoryNotifier())

        engine.evaluate(session(90), Thresholds(), now=utc_now)
        alerts = engine.evaluate(session(70), Thresholds(), now=utc_now)

        assert alerts == []
        assert levels.get(MetricID.FIVE_HOUR) == UsageLevel.ORANGE

    def test_jump_green_to_red(self, utc_now):
        engine = NotificationEngine(MemoryLevelStore(), MemoryNotifier())
        alerts = engine.evaluate(session(95), Thresholds(), now=utc_now)
        assert len(alerts) == 1
        assert alerts[0].level == UsageLevel.RED

    def test_absent_metric_keeps_level(self, utc_now):
        levels = MemoryLevelStore({MetricID.SEVEN_DAY: UsageLevel.RED})
        engine = NotificationEngine(levels, MemoryNotifier())

        engine.evaluate(session(10), Thresholds(), now=utc_now)

        assert levels.get(MetricID.SEVEN_DAY) == UsageLevel.RED

    def test_metrics_tracked_independently(self, utc_now):
        engine = NotificationEngine(MemoryLevelStore(), MemoryNotifier())
        snapshot = UsageSnapshot(
            five_hour=UsageBucket(utilization=65),
            seven_day=UsageBucket(utilization=90),
            seven_day_sonnet=UsageBucket(utilization=10),
        )
        alerts = engine.evaluate(snapshot, Thresholds(), now=utc_now)
        assert [(a.metric, a.level) for a in alerts] == [
            (MetricID.FIVE_HOUR, UsageLevel.ORANGE),
            (MetricID.SEVEN_DAY, UsageLevel.RED),
        ]

    def test_levels_survive_restart(self, tmp_path, utc_now):
        """A new engine over the same level file does not re-announce."""
        path = tmp_path / "levels.json"
        first = MemoryNotifier()
        NotificationEngine(FileLevelStore(path), first).evaluate(
            session(70), Thresholds(), now=utc_now
        )
        second = MemoryNotifier()
        NotificationEngine(FileLevelStore(path), second).evaluate(
            session(72), Thresholds(), now=utc_now
        )

        assert len(first.alerts) == 1
        assert second.alerts == []

    def test_unwritable_level_file_still_alerts(self, tmp_path, utc_now):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        notifier = MemoryNotifier()

        alerts = NotificationEngine(FileLevelStore(blocker / "levels.json"), notifier).evaluate(
            session(70), Thresholds(), now=utc_now
        )

        assert [a.level for a in alerts] == [UsageLevel.ORANGE]
        assert notifier.alerts == alerts

    def test_custom_thresholds(self, utc_now):
        engine = NotificationEngine(MemoryLevelStore(), MemoryNotifier())
        thresholds = Thresholds(warning_percent=30, critical_percent=50)
        alerts = engine.evaluate(session(35), thresholds, now=utc_now)
        assert alerts[0].level == UsageLevel.ORANGE


class TestAlertText:
    """Tests for alert titles and bodies."""

    def test_titles(self, utc_now):
        engine = NotificationEngine(MemoryLevelStore(), MemoryNotifier())
        orange = engine.evaluate(session(65), Thresholds(), now=utc_now)[0]
        red = engine.evaluate(session(90), Thresholds(), now=utc_now)[0]
        green = engine.evaluate(session(40), Thresholds(), now=utc_now)[0]

        assert orange.title == "\u26a0\ufe0f Session — 65%"
        assert red.title == "\U0001f534 Session — 90%"
        assert green.title == "\U0001f7e2 Session — 40%"

    def test_session_orange_body_varies_by_zone(self, utc_now):
        resets_at = utc_now + timedelta(hours=2)
        bodies = {
            zone: escalation_body(
                MetricID.FIVE_HOUR, UsageLevel.ORANGE, resets_at, zone, Thresholds(), utc_now
            )
            for zone in PacingZone
        }
        assert len(set(bodies.values())) == 3
        assert all("2h 0m" in body for body in bodies.values())

    def test_weekly_ignores_pacing(self, utc_now):
        """Only the session metric receives the pacing zone."""
        notifier = MemoryNotifier()
        engine = NotificationEngine(MemoryLevelStore(), notifier)
        resets_at = utc_now + timedelta(days=2)
        snapshot = UsageSnapshot(seven_day=UsageBucket(utilization=65, resets_at=resets_at))

        hot = engine.evaluate(snapshot, Thresholds(), PacingZone.HOT, now=utc_now)[0]
        expected = escalation_body(
            MetricID.SEVEN_DAY, UsageLevel.ORANGE, resets_at, None, Thresholds(), utc_now
        )
        assert hot.body == expected

    def test_fallback_without_reset(self, utc_now):
        body = escalation_body(
            MetricID.FIVE_HOUR, UsageLevel.ORANGE, None, None, Thresholds(), utc_now
        )
        assert "60%" in body

    def test_fallback_with_past_reset(self, utc_now):
        past = utc_now - timedelta(minutes=1)
        assert recovery_body(MetricID.SEVEN_DAY, past, utc_now) == "Usage is back to normal."

    def test_green_escalation_body_empty(self, utc_now):
        body = escalation_body(
            MetricID.FIVE_HOUR, UsageLevel.GREEN, utc_now, None, Thresholds(), utc_now
        )
        assert body == ""


class TestNotifiers:
    """Tests for notifier implementations."""

    def test_send_test(self):
        notifier = MemoryNotifier()
        alert = NotificationEngine(MemoryLevelStore(), notifier).send_test()
        assert alert.kind == AlertKind.TEST
        assert notifier.alerts == [alert]

    def test_callback_notifier(self):
        received = []
        engine = NotificationEngine(MemoryLevelStore(), CallbackNotifier(received.append))
        engine.send_test()
        assert len(received) == 1

    def test_console_notifier(self):
        console = Console(file=StringIO(), width=100)
        NotificationEngine(MemoryLevelStore(), ConsoleNotifier(console)).send_test()
        output = console.file.getvalue()
        assert "TokenEater" in output
        assert "Notifications are working." in output

    def test_reset_clears_levels(self, utc_now):
        levels = MemoryLevelStore()
        engine = NotificationEngine(levels, MemoryNotifier())
        engine.evaluate(session(90), Thresholds(), now=utc_now)
        engine.reset()
        assert levels.levels == {}
