"""Pytest configuration and shared fixtures for tokeneater tests."""

from __future__ import annotations

import logging
from datetime import UTC
from datetime import datetime
from datetime import timedelta
from pathlib import Path

import pytest

from tokeneater.auth.base import MemoryCredentialSource
from tokeneater.config.levels import MemoryLevelStore
from tokeneater.config.settings import Config
from tokeneater.config.shared import MemorySharedStateStore
from tokeneater.core.client import MemoryUsageClient
from tokeneater.core.notifications import MemoryNotifier
from tokeneater.core.notifications import NotificationEngine
from tokeneater.core.sync import SyncEngine
from tokeneater.models import TokenCredential
from tokeneater.models import UsageBucket
from tokeneater.models import UsageSnapshot


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every tokeneater path at a temporary directory."""
    root = tmp_path / "tokeneater-home"
    monkeypatch.setenv("TOKENEATER_CONFIG_DIR", str(root / "config"))
    monkeypatch.setenv("TOKENEATER_STATE_DIR", str(root / "state"))
    monkeypatch.setenv("TOKENEATER_SHARED_DIR", str(root / "shared"))
    for var in (
        "TOKENEATER_POLL_INTERVAL",
        "TOKENEATER_PROXY",
        "TOKENEATER_WARNING_PERCENT",
        "TOKENEATER_CRITICAL_PERCENT",
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setattr(
        "tokeneater.config.shared.legacy_shared_file",
        lambda: root / "legacy" / "shared.json",
    )
    monkeypatch.setattr("tokeneater.config.settings._config", None)
    return root


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo CLI logging setup so caplog keeps working across tests."""
    logger = logging.getLogger("tokeneater")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def utc_now() -> datetime:
    """Fixed UTC datetime for consistent testing."""
    return datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def token_a() -> TokenCredential:
    return TokenCredential(access_token="sk-ant-oat01-aaaa")


@pytest.fixture
def token_b() -> TokenCredential:
    return TokenCredential(access_token="sk-ant-oat01-bbbb")


@pytest.fixture
def sample_snapshot(utc_now: datetime) -> UsageSnapshot:
    """Snapshot with the three core buckets."""
    return UsageSnapshot(
        five_hour=UsageBucket(utilization=42.0, resets_at=utc_now + timedelta(hours=3)),
        seven_day=UsageBucket(utilization=30.0, resets_at=utc_now + timedelta(days=3)),
        seven_day_sonnet=UsageBucket(
            utilization=5.0, resets_at=utc_now + timedelta(days=3)
        ),
    )


@pytest.fixture
def sample_usage_payload() -> dict:
    """Usage endpoint response as returned by the API."""
    return {
        "five_hour": {"utilization": 42.0, "resets_at": "2025-01-15T15:00:00.846865+00:00"},
        "seven_day": {"utilization": 30.0, "resets_at": "2025-01-18T12:00:00Z"},
        "seven_day_sonnet": {"utilization": 5.0, "resets_at": "2025-01-18T12:00:00Z"},
        "seven_day_opus": None,
        "extra_usage": {"is_enabled": False},
    }


@pytest.fixture
def store() -> MemorySharedStateStore:
    return MemorySharedStateStore()


@pytest.fixture
def notifier() -> MemoryNotifier:
    return MemoryNotifier()


@pytest.fixture
def notifications(notifier: MemoryNotifier) -> NotificationEngine:
    return NotificationEngine(MemoryLevelStore(), notifier)


@pytest.fixture
def make_engine(store, notifications, utc_now):
    """Factory for a SyncEngine wired to in-memory collaborators."""

    def factory(
        credentials: MemoryCredentialSource,
        client: MemoryUsageClient,
        config: Config | None = None,
    ) -> SyncEngine:
        return SyncEngine(
            credentials=credentials,
            client=client,
            store=store,
            notifications=notifications,
            config=config,
            clock=lambda: utc_now,
            model_stats_reader=lambda: [],
        )

    return factory
