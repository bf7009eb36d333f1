"""Tests for core/sync.py (credential recovery protocol and poll loop)."""

from __future__ import annotations

import asyncio

import keyring
import pytest

from tokeneater.auth.base import MemoryCredentialSource
from tokeneater.auth.keyring import KeyringCredentialSource
from tokeneater.config.settings import Config
from tokeneater.config.settings import PollConfig
from tokeneater.config.shared import FileSharedStateStore
from tokeneater.core.client import MemoryUsageClient
from tokeneater.core.sync import SyncEngine
from tokeneater.core.sync import SyncStatus
from tokeneater.errors import AuthFailureError
from tokeneater.errors import ErrorKind
from tokeneater.errors import HTTPStatusFailure
from tokeneater.errors import NetworkFailure
from tokeneater.models import CachedState
from tokeneater.models import Thresholds
from tokeneater.models import UsageBucket
from tokeneater.models import UsageSnapshot


def auth_failure() -> AuthFailureError:
    return AuthFailureError("HTTP 401: invalid token", status_code=401)


class TestRefreshSuccess:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_adopts_credential_and_caches(
        self, make_engine, store, token_a, sample_snapshot, utc_now
    ):
        engine = make_engine(MemoryCredentialSource(token_a), MemoryUsageClient([sample_snapshot]))

        result = await engine.refresh()

        assert result.status == SyncStatus.OK
        assert result.snapshot == sample_snapshot
        assert result.network_calls == 1
        assert store.read_credential() == token_a
        assert store.read() == CachedState(snapshot=sample_snapshot, fetched_at=utc_now)
        assert store.last_sync_at() == utc_now
        assert store.read_settings() == Thresholds()
        assert engine.is_configured
        assert engine.load_cached() == store.read()

    @pytest.mark.asyncio
    async def test_configured_engine_skips_silent_read(
        self, make_engine, store, token_a, sample_snapshot
    ):
        store.write_credential(token_a)
        credentials = MemoryCredentialSource(token_a)
        engine = make_engine(credentials, MemoryUsageClient([sample_snapshot]))

        await engine.refresh()

        assert credentials.silent_reads == 0

    @pytest.mark.asyncio
    async def test_evaluates_notifications(self, make_engine, notifier, token_a, utc_now):
        snapshot = UsageSnapshot(five_hour=UsageBucket(utilization=70))
        engine = make_engine(MemoryCredentialSource(token_a), MemoryUsageClient([snapshot]))

        result = await engine.refresh()

        assert len(result.alerts) == 1
        assert notifier.alerts == result.alerts

    @pytest.mark.asyncio
    async def test_writes_model_stats(self, store, notifications, token_a, sample_snapshot):
        from tokeneater.models import ModelTokenStats

        stats = [ModelTokenStats(model_name="Sonnet 4.6", total_tokens=1200)]
        engine = SyncEngine(
            MemoryCredentialSource(token_a),
            MemoryUsageClient([sample_snapshot]),
            store,
            notifications,
            model_stats_reader=lambda: stats,
        )
        await engine.refresh()
        await engine.stop()

        assert store.read_model_stats() == stats


class TestGuards:
    """Pre-flight guards never touch the network."""

    @pytest.mark.asyncio
    async def test_no_credential(self, make_engine):
        client = MemoryUsageClient()
        engine = make_engine(MemoryCredentialSource(None), client)

        result = await engine.refresh()

        assert result.error.kind == ErrorKind.NO_CREDENTIAL
        assert client.call_count == 0

    @pytest.mark.asyncio
    async def test_vault_locked_when_unconfigured(self, make_engine):
        client = MemoryUsageClient()
        engine = make_engine(MemoryCredentialSource(None, silent_locked=True), client)

        result = await engine.refresh()

        assert result.error.kind == ErrorKind.VAULT_LOCKED
        assert result.error.is_transient
        assert client.call_count == 0


class TestRecovery:
    """Tests for the bounded recovery sub-protocol."""

    @pytest.mark.asyncio
    async def test_bounded_retry_against_dead_credential(self, make_engine, token_a):
        """A always fails and the store keeps returning A: one request total."""
        client = MemoryUsageClient([auth_failure()])
        engine = make_engine(MemoryCredentialSource(token_a), client)

        first = await engine.refresh()
        second = await engine.refresh()
        third = await engine.refresh()

        assert client.call_count == 1
        assert first.error.kind == ErrorKind.AUTH_FAILURE
        assert second.error.kind == ErrorKind.AUTH_FAILURE
        assert second.network_calls == 0
        assert third.network_calls == 0
        assert engine.last_failed_credential == token_a

    @pytest.mark.asyncio
    async def test_rotation_after_sticky_failure(
        self, make_engine, store, token_a, token_b, sample_snapshot
    ):
        """A fails; the source later yields B; next refresh adopts B with one request."""
        credentials = MemoryCredentialSource(token_a)
        client = MemoryUsageClient([auth_failure(), sample_snapshot])
        engine = make_engine(credentials, client)

        await engine.refresh()
        assert engine.last_failed_credential == token_a

        credentials.credential = token_b
        result = await engine.refresh()

        assert result.status == SyncStatus.OK
        assert result.network_calls == 1
        assert client.calls == [token_a, token_b]
        assert store.read_credential() == token_b
        assert store.read().snapshot == sample_snapshot
        assert engine.last_failed_credential is None

    @pytest.mark.asyncio
    async def test_rotation_during_recovery_retries_once(
        self, make_engine, store, token_a, token_b, sample_snapshot
    ):
        """A is rejected, the silent re-read already has B: retry within the same refresh."""
        store.write_credential(token_a)
        credentials = MemoryCredentialSource(token_b)
        client = MemoryUsageClient([auth_failure(), sample_snapshot])
        engine = make_engine(credentials, client)

        result = await engine.refresh()

        assert result.status == SyncStatus.OK
        assert result.network_calls == 2
        assert client.calls == [token_a, token_b]
        assert store.read_credential() == token_b
        assert engine.last_failed_credential is None

    @pytest.mark.asyncio
    async def test_failed_retry_does_not_loop(self, make_engine, store, token_a, token_b):
        """The single retry with B also fails: surface auth failure, no third request."""
        store.write_credential(token_a)
        client = MemoryUsageClient([auth_failure()])
        engine = make_engine(MemoryCredentialSource(token_b), client)

        result = await engine.refresh()
        again = await engine.refresh()

        assert result.error.kind == ErrorKind.AUTH_FAILURE
        assert client.call_count == 2
        assert again.network_calls == 0
        assert engine.last_failed_credential == token_b

    @pytest.mark.asyncio
    async def test_locked_vault_during_recovery(self, make_engine, store, token_a):
        """Locked store is transient and leaves the memo unset."""
        store.write_credential(token_a)
        client = MemoryUsageClient([auth_failure()])
        engine = make_engine(MemoryCredentialSource(token_a, silent_locked=True), client)

        result = await engine.refresh()

        assert result.error.kind == ErrorKind.VAULT_LOCKED
        assert engine.last_failed_credential is None

        # The next tick tries again cleanly
        await engine.refresh()
        assert client.call_count == 2

    @pytest.mark.asyncio
    async def test_credential_gone_during_recovery_is_sticky(self, make_engine, store, token_a):
        store.write_credential(token_a)
        client = MemoryUsageClient([auth_failure()])
        engine = make_engine(MemoryCredentialSource(None), client)

        result = await engine.refresh()
        await engine.refresh()

        assert result.error.kind == ErrorKind.AUTH_FAILURE
        assert engine.last_failed_credential == token_a
        assert client.call_count == 1

    @pytest.mark.asyncio
    async def test_recovery_skips_known_dead_credential(
        self, make_engine, store, token_a, token_b
    ):
        """Store rewritten to B while A is memoized; the re-read still yields A."""
        client = MemoryUsageClient([auth_failure()])
        engine = make_engine(MemoryCredentialSource(token_a), client)
        await engine.refresh()
        assert engine.last_failed_credential == token_a

        store.write_credential(token_b)
        result = await engine.refresh()

        assert result.error.kind == ErrorKind.AUTH_FAILURE
        assert result.network_calls == 1
        assert client.calls == [token_a, token_b]
        assert store.read_credential() == token_b
        assert engine.last_failed_credential == token_b

    @pytest.mark.asyncio
    async def test_reload_config_clears_memo(self, make_engine, token_a):
        client = MemoryUsageClient([auth_failure()])
        engine = make_engine(MemoryCredentialSource(token_a), client)
        await engine.refresh()

        configured = await engine.reload_config()
        await engine.refresh()
        await engine.stop()

        assert configured
        assert client.call_count == 2


class TestTransientErrors:
    """HTTP and network failures keep the cache and the credential state."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,kind",
        [
            (NetworkFailure("Connection refused by server"), ErrorKind.NETWORK_ERROR),
            (HTTPStatusFailure(503, "unavailable"), ErrorKind.HTTP_ERROR),
            (RuntimeError("boom"), ErrorKind.NETWORK_ERROR),
        ],
    )
    async def test_keeps_cached_snapshot(
        self, make_engine, store, token_a, sample_snapshot, utc_now, error, kind
    ):
        store.write_credential(token_a)
        store.write_snapshot(CachedState(snapshot=sample_snapshot, fetched_at=utc_now))
        engine = make_engine(MemoryCredentialSource(token_a), MemoryUsageClient([error]))

        result = await engine.refresh()

        assert result.status == SyncStatus.ERROR
        assert result.error.kind == kind
        assert result.error.is_transient
        assert result.snapshot == sample_snapshot
        assert result.fetched_at == utc_now
        assert engine.last_failed_credential is None
        assert store.read().snapshot == sample_snapshot


class TestUnavailableStorage:
    """Broken storage degrades a refresh but never raises out of it."""

    @pytest.mark.asyncio
    async def test_unwritable_shared_store(
        self, tmp_path, notifications, token_a, sample_snapshot
    ):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = FileSharedStateStore(
            blocker / "shared.json", tmp_path / "legacy" / "shared.json", migrate=False
        )
        engine = SyncEngine(
            MemoryCredentialSource(token_a),
            MemoryUsageClient([sample_snapshot]),
            store,
            notifications,
            model_stats_reader=lambda: [],
        )

        result = await engine.refresh()
        await engine.stop()

        assert result.status == SyncStatus.OK
        assert result.snapshot == sample_snapshot
        assert result.network_calls == 1
        assert store.read_credential() is None

    @pytest.mark.asyncio
    async def test_keyring_backend_crash(self, monkeypatch, make_engine):
        def get_password(service, username):
            raise RuntimeError("dbus backend exploded")

        monkeypatch.setattr(keyring, "get_password", get_password)
        client = MemoryUsageClient()
        engine = make_engine(KeyringCredentialSource(username="alex"), client)

        result = await engine.refresh()

        assert result.error.kind == ErrorKind.NO_CREDENTIAL
        assert client.call_count == 0


class TestSubscribe:
    """Tests for result callbacks."""

    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self, make_engine, token_a, sample_snapshot):
        engine = make_engine(MemoryCredentialSource(token_a), MemoryUsageClient([sample_snapshot]))
        received = []
        unsubscribe = engine.subscribe(received.append)

        await engine.refresh()
        unsubscribe()
        await engine.refresh()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_others(
        self, make_engine, token_a, sample_snapshot
    ):
        engine = make_engine(MemoryCredentialSource(token_a), MemoryUsageClient([sample_snapshot]))
        received = []

        def broken(result):
            raise ValueError("subscriber bug")

        engine.subscribe(broken)
        engine.subscribe(received.append)
        result = await engine.refresh()

        assert received == [result]


class _BlockingClient(MemoryUsageClient):
    def __init__(self, snapshot):
        super().__init__([snapshot])
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch(self, credential, proxy=None):
        self.started.set()
        await self.release.wait()
        return await super().fetch(credential, proxy)


class TestLifecycle:
    """Tests for start/stop and cancellation."""

    @pytest.mark.asyncio
    async def test_result_not_applied_after_stop(
        self, make_engine, store, notifier, token_a
    ):
        snapshot = UsageSnapshot(five_hour=UsageBucket(utilization=90))
        client = _BlockingClient(snapshot)
        engine = make_engine(MemoryCredentialSource(token_a), client)
        received = []
        engine.subscribe(received.append)

        refresh = asyncio.create_task(engine.refresh())
        await client.started.wait()
        await engine.stop()
        client.release.set()
        result = await refresh

        assert result.status == SyncStatus.CANCELLED
        assert store.read() is None
        assert notifier.alerts == []
        assert received == []

    @pytest.mark.asyncio
    async def test_poll_loop(self, make_engine, token_a, sample_snapshot):
        engine = make_engine(MemoryCredentialSource(token_a), MemoryUsageClient([sample_snapshot]))
        results = []
        engine.subscribe(results.append)

        async with engine:
            assert engine.running
            while not results:
                await asyncio.sleep(0)

        assert not engine.running
        assert results[0].status == SyncStatus.OK

    @pytest.mark.asyncio
    async def test_poll_interval_from_config(self, make_engine, token_a, sample_snapshot):
        config = Config(poll=PollConfig(interval_seconds=0.01))
        client = MemoryUsageClient([sample_snapshot])
        engine = make_engine(MemoryCredentialSource(token_a), client, config)

        engine.start()
        while client.call_count < 3:
            await asyncio.sleep(0.01)
        await engine.stop()

        assert client.call_count >= 3

    @pytest.mark.asyncio
    async def test_debounced_reload_coalesces(self, store, notifications, token_a, sample_snapshot):
        reloads = []
        config = Config(poll=PollConfig(reload_debounce_seconds=0.01))
        engine = SyncEngine(
            MemoryCredentialSource(token_a),
            MemoryUsageClient([sample_snapshot]),
            store,
            notifications,
            config=config,
            on_reload=lambda: reloads.append(True),
            model_stats_reader=lambda: [],
        )

        for _ in range(3):
            await engine.refresh()
        await asyncio.sleep(0.05)

        assert reloads == [True]


class TestSignInOut:
    """Tests for sign-in and clear-all-state."""

    @pytest.mark.asyncio
    async def test_sign_in_tests_connection(self, make_engine, store, token_a, sample_snapshot):
        credentials = MemoryCredentialSource(token_a, silent_locked=True)
        engine = make_engine(credentials, MemoryUsageClient([sample_snapshot]))

        result = await engine.sign_in()

        assert result.success
        assert credentials.interactive_reads == 1
        assert store.read_credential() == token_a

    @pytest.mark.asyncio
    async def test_sign_in_without_credential(self, make_engine):
        engine = make_engine(MemoryCredentialSource(None), MemoryUsageClient())
        result = await engine.sign_in()
        assert not result.success

    @pytest.mark.asyncio
    async def test_sign_out_clears_everything(
        self, make_engine, store, notifications, token_a
    ):
        snapshot = UsageSnapshot(five_hour=UsageBucket(utilization=90))
        engine = make_engine(MemoryCredentialSource(token_a), MemoryUsageClient([snapshot]))
        await engine.refresh()
        assert notifications.levels.levels

        engine.sign_out()

        assert store.read_credential() is None
        assert store.read() is None
        assert engine.last_failed_credential is None
        assert notifications.levels.levels == {}
