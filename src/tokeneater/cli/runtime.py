"""Wiring of production collaborators for CLI commands."""

from __future__ import annotations

from rich.console import Console

from tokeneater.auth import default_credential_source
from tokeneater.config.levels import FileLevelStore
from tokeneater.config.settings import Config
from tokeneater.config.shared import FileSharedStateStore
from tokeneater.config.shared import SharedStateStore
from tokeneater.core.client import HttpUsageClient
from tokeneater.core.notifications import ConsoleNotifier
from tokeneater.core.notifications import NotificationEngine
from tokeneater.core.notifications import Notifier
from tokeneater.core.sync import SyncEngine


def open_store() -> SharedStateStore:
    """Open the shared store (runs the legacy-location migration)."""
    return FileSharedStateStore()


def build_notifications(notifier: Notifier | None = None) -> NotificationEngine:
    return NotificationEngine(FileLevelStore(), notifier or ConsoleNotifier())


def build_engine(
    config: Config,
    console: Console | None = None,
    store: SharedStateStore | None = None,
) -> SyncEngine:
    """Assemble a SyncEngine backed by the keyring, httpx and the shared file."""
    notifier = ConsoleNotifier(console) if console is not None else None
    return SyncEngine(
        credentials=default_credential_source(config.poll.silent_read_timeout),
        client=HttpUsageClient(timeout=config.poll.timeout),
        store=store or open_store(),
        notifications=build_notifications(notifier),
        config=config,
    )
