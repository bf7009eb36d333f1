"""Sync core for tokeneater."""

from tokeneater.core.client import (
    ANTHROPIC_BETA,
    USAGE_URL,
    ConnectionTestResult,
    HttpUsageClient,
    MemoryUsageClient,
    UsageClient,
    parse_usage_payload,
)
from tokeneater.core.debounce import Debouncer
from tokeneater.core.model_stats import read_model_stats, short_model_name
from tokeneater.core.notifications import (
    Alert,
    AlertKind,
    CallbackNotifier,
    ConsoleNotifier,
    MemoryNotifier,
    NotificationEngine,
    Notifier,
    level_for,
)
from tokeneater.core.pacing import WINDOW, calculate_pacing, pacing_for_bucket
from tokeneater.core.sync import SyncEngine, SyncResult, SyncStatus
from tokeneater.core.timeline import TimelineEntry, TimelineProvider

__all__ = [
    # client
    "UsageClient",
    "HttpUsageClient",
    "MemoryUsageClient",
    "ConnectionTestResult",
    "parse_usage_payload",
    "USAGE_URL",
    "ANTHROPIC_BETA",
    # sync
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
    # pacing
    "WINDOW",
    "calculate_pacing",
    "pacing_for_bucket",
    # notifications
    "Alert",
    "AlertKind",
    "Notifier",
    "ConsoleNotifier",
    "CallbackNotifier",
    "MemoryNotifier",
    "NotificationEngine",
    "level_for",
    # debounce
    "Debouncer",
    # timeline
    "TimelineEntry",
    "TimelineProvider",
    # model stats
    "read_model_stats",
    "short_model_name",
]
