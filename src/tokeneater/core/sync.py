"""Sync engine: fetch, cache, credential recovery and notification dispatch.

The engine is the only writer of the shared store. Each refresh follows a
bounded recovery protocol keyed on the credential value:

1. When unconfigured, or when the stored credential is the one that last
   failed, try a silent credential read and adopt anything new.
2. If there is still no usable credential, return without any network call.
3. Fetch. On success cache the snapshot and evaluate notifications.
4. On an auth failure, re-read silently once. A locked store is transient;
   the same (or no) credential is remembered as dead until it changes; a
   rotated credential gets exactly one retry.
5. Transport and HTTP failures keep the cached snapshot and touch nothing.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from datetime import UTC
from datetime import datetime
from enum import StrEnum

import msgspec

from tokeneater.auth.base import CredentialSource
from tokeneater.auth.base import ReadStatus
from tokeneater.config.settings import Config
from tokeneater.config.shared import SharedStateStore
from tokeneater.core.client import ConnectionTestResult
from tokeneater.core.client import UsageClient
from tokeneater.core.debounce import Debouncer
from tokeneater.core.model_stats import read_model_stats
from tokeneater.core.notifications import Alert
from tokeneater.core.notifications import NotificationEngine
from tokeneater.core.pacing import calculate_pacing
from tokeneater.errors import AuthFailureError
from tokeneater.errors import ErrorKind
from tokeneater.errors import SyncError
from tokeneater.errors import classify_exception
from tokeneater.errors import default_message
from tokeneater.models import CachedState
from tokeneater.models import Credential
from tokeneater.models import ModelTokenStats
from tokeneater.models import PacingResult
from tokeneater.models import UsageSnapshot

logger = logging.getLogger(__name__)


class SyncStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    CANCELLED = "cancelled"  # Engine stopped while the fetch was in flight


class SyncResult(msgspec.Struct, frozen=True):
    """Outcome of one refresh.

    On error, snapshot/fetched_at carry the best known cached data so
    callers can always show something.
    """

    status: SyncStatus
    snapshot: UsageSnapshot | None = None
    fetched_at: datetime | None = None
    error: SyncError | None = None
    alerts: list[Alert] = msgspec.field(default_factory=list)
    network_calls: int = 0
    pacing: PacingResult | None = None

    @property
    def ok(self) -> bool:
        return self.status == SyncStatus.OK


class _Cancelled(Exception):
    """Internal signal: the engine was stopped mid-refresh."""


class SyncEngine:
    """Owns the poll loop and the credential recovery protocol.

    All collaborators are injected; nothing here reaches for globals.
    """

    def __init__(
        self,
        credentials: CredentialSource,
        client: UsageClient,
        store: SharedStateStore,
        notifications: NotificationEngine,
        config: Config | None = None,
        clock: Callable[[], datetime] | None = None,
        on_reload: Callable[[], Awaitable[None] | None] | None = None,
        model_stats_reader: Callable[[], list[ModelTokenStats]] = read_model_stats,
    ) -> None:
        self.credentials = credentials
        self.client = client
        self.store = store
        self.notifications = notifications
        self.config = config or Config()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.model_stats_reader = model_stats_reader
        self.on_reload = on_reload

        self.reloader = Debouncer(
            self._reload_display, delay=self.config.poll.reload_debounce_seconds
        )
        self._last_failed: Credential | None = None
        self._subscribers: list[Callable[[SyncResult], None]] = []
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._epoch = 0

    @property
    def last_failed_credential(self) -> Credential | None:
        """Credential known to be rejected; never persisted."""
        return self._last_failed

    @property
    def is_configured(self) -> bool:
        return self.store.is_configured()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def load_cached(self) -> CachedState | None:
        return self.store.read()

    def subscribe(self, callback: Callable[[SyncResult], None]) -> Callable[[], None]:
        """Call `callback` with every applied result; returns an unsubscribe."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # Refresh

    async def refresh(self) -> SyncResult:
        """Run one sync cycle. Never raises for fetch or credential failures."""
        async with self._lock:
            epoch = self._epoch
            calls = [0]
            try:
                result = await self._refresh(epoch, calls)
            except _Cancelled:
                logger.debug("Refresh discarded; engine stopped")
                return SyncResult(status=SyncStatus.CANCELLED, network_calls=calls[0])

        self._publish(result)
        return result

    def _check_epoch(self, epoch: int) -> None:
        if epoch != self._epoch:
            raise _Cancelled()

    async def _refresh(self, epoch: int, calls: list[int]) -> SyncResult:
        credential = self.store.read_credential()
        vault_locked = False

        if credential is None or credential == self._last_failed:
            read = await self.credentials.read_silent()
            self._check_epoch(epoch)
            if read.status == ReadStatus.FOUND and read.credential != self._last_failed:
                self._adopt(read.credential)
                self._last_failed = None
                credential = read.credential
            elif read.is_locked:
                vault_locked = True

        # Guard: never spend a request on a missing or known-dead credential
        if credential is None:
            kind = ErrorKind.VAULT_LOCKED if vault_locked else ErrorKind.NO_CREDENTIAL
            return self._failure(SyncError.of(kind, default_message(kind)), calls)
        if credential == self._last_failed:
            kind = ErrorKind.VAULT_LOCKED if vault_locked else ErrorKind.AUTH_FAILURE
            return self._failure(SyncError.of(kind, default_message(kind)), calls)

        try:
            snapshot = await self._fetch(credential, calls)
        except AuthFailureError as e:
            self._check_epoch(epoch)
            return await self._recover(credential, e, epoch, calls)
        except Exception as e:
            self._check_epoch(epoch)
            return self._failure(classify_exception(e), calls)

        self._check_epoch(epoch)
        return self._apply(snapshot, calls)

    async def _fetch(self, credential: Credential, calls: list[int]) -> UsageSnapshot:
        calls[0] += 1
        return await self.client.fetch(credential, self.config.proxy)

    async def _recover(
        self,
        failed: Credential,
        error: AuthFailureError,
        epoch: int,
        calls: list[int],
    ) -> SyncResult:
        """One-shot recovery after the server rejected `failed`."""
        read = await self.credentials.read_silent()
        self._check_epoch(epoch)

        if read.is_locked:
            logger.warning("Credential rejected and credential store is locked")
            kind = ErrorKind.VAULT_LOCKED
            return self._failure(SyncError.of(kind, default_message(kind)), calls)

        if (
            read.status == ReadStatus.NOT_FOUND
            or read.credential == failed
            or read.credential == self._last_failed
        ):
            logger.warning(
                "Credential %s rejected; waiting for it to change", failed.fingerprint
            )
            self._last_failed = failed
            return self._failure(error.to_error(), calls)

        rotated = read.credential
        logger.info("Adopting rotated credential %s", rotated.fingerprint)
        self._adopt(rotated)

        try:
            snapshot = await self._fetch(rotated, calls)
        except AuthFailureError as e:
            self._check_epoch(epoch)
            logger.warning("Rotated credential %s also rejected", rotated.fingerprint)
            self._last_failed = rotated
            return self._failure(e.to_error(), calls)
        except Exception as e:
            self._check_epoch(epoch)
            return self._failure(classify_exception(e), calls)

        self._check_epoch(epoch)
        return self._apply(snapshot, calls)

    def _adopt(self, credential: Credential) -> None:
        if self.store.read_credential() != credential:
            logger.debug("Storing credential %s", credential.fingerprint)
            try:
                self.store.write_credential(credential)
            except OSError as e:
                logger.error("Cannot store credential: %s", e)

    def _apply(self, snapshot: UsageSnapshot, calls: list[int]) -> SyncResult:
        now = self.clock()
        thresholds = self.config.effective_thresholds()

        try:
            self.store.write_snapshot(CachedState(snapshot=snapshot, fetched_at=now))
            self.store.write_settings(thresholds)
        except OSError as e:
            logger.error("Cannot write shared state: %s", e)
        self._write_model_stats()
        self._last_failed = None

        pacing = calculate_pacing(snapshot, now)
        alerts = self.notifications.evaluate(
            snapshot,
            thresholds,
            pacing_zone=pacing.zone if pacing else None,
            now=now,
        )
        self.reloader.trigger()

        logger.debug("Sync ok after %d request(s)", calls[0])
        return SyncResult(
            status=SyncStatus.OK,
            snapshot=snapshot,
            fetched_at=now,
            alerts=alerts,
            network_calls=calls[0],
            pacing=pacing,
        )

    def _write_model_stats(self) -> None:
        try:
            stats = self.model_stats_reader()
            self.store.write_model_stats(stats)
        except OSError as e:
            logger.debug("Skipping model stats: %s", e)

    def _failure(self, error: SyncError, calls: list[int]) -> SyncResult:
        if error.is_transient:
            logger.info("Sync failed (%s): %s", error.kind, error.message)
        else:
            logger.warning("Sync failed (%s): %s", error.kind, error.message)

        cached = self.store.read()
        return SyncResult(
            status=SyncStatus.ERROR,
            snapshot=cached.snapshot if cached else None,
            fetched_at=cached.fetched_at if cached else None,
            error=error,
            network_calls=calls[0],
            pacing=calculate_pacing(cached.snapshot, self.clock()) if cached else None,
        )

    def _publish(self, result: SyncResult) -> None:
        for callback in list(self._subscribers):
            try:
                callback(result)
            except Exception:
                logger.exception("Sync subscriber failed")

    async def _reload_display(self) -> None:
        if self.on_reload is None:
            return
        result = self.on_reload()
        if result is not None:
            await result

    # Credential and state management

    async def reload_config(self, config: Config | None = None) -> bool:
        """Re-read settings and the credential after an external change.

        Clears the failure memo so the next refresh tries again. Returns
        whether a credential is configured.
        """
        if config is not None:
            self.config = config
            self.reloader.delay = config.poll.reload_debounce_seconds
        self._last_failed = None

        read = await self.credentials.read_silent()
        if read.status == ReadStatus.FOUND:
            self._adopt(read.credential)
        self.reloader.trigger()
        return self.store.is_configured()

    async def sign_in(self) -> ConnectionTestResult:
        """Interactive credential read followed by a connection test."""
        read = await self.credentials.read_interactive()
        if read.status != ReadStatus.FOUND:
            kind = ErrorKind.VAULT_LOCKED if read.is_locked else ErrorKind.NO_CREDENTIAL
            return ConnectionTestResult(success=False, message=default_message(kind))

        self._adopt(read.credential)
        self._last_failed = None
        return await self.client.test_connection(read.credential, self.config.proxy)

    def sign_out(self) -> None:
        """Clear all state: shared document, notification levels and the memo."""
        self.reloader.cancel()
        self._last_failed = None
        self.store.clear()
        self.notifications.reset()

    # Polling

    def start(self, interval: float | None = None) -> None:
        """Start the poll loop on the running event loop."""
        if self.running:
            return
        interval = interval or self.config.poll.interval_seconds
        self._task = asyncio.get_running_loop().create_task(self._poll(interval))

    async def _poll(self, interval: float) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:
                logger.exception("Unexpected error during refresh")
            await asyncio.sleep(interval)

    async def stop(self) -> None:
        """Stop polling; results still in flight are discarded."""
        self._epoch += 1
        self.reloader.cancel()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aenter__(self) -> SyncEngine:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
