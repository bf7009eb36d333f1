"""Cross-process shared state for tokeneater.

A single JSON document holds the credential, the last good snapshot and
the lightweight display settings. The sync owner rewrites it; any number
of reader processes (possibly sandboxed) only read it. Every write goes to
a temp file in the same directory and is renamed into place, so a reader
sees either the previous complete document or the new one.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from abc import ABC
from abc import abstractmethod
from datetime import datetime
from pathlib import Path

import msgspec

from tokeneater.config.paths import legacy_shared_file
from tokeneater.config.paths import shared_file
from tokeneater.models import CachedState
from tokeneater.models import Credential
from tokeneater.models import ModelTokenStats
from tokeneater.models import Thresholds

logger = logging.getLogger(__name__)


class SharedDocument(msgspec.Struct, frozen=True, omit_defaults=True):
    """On-disk layout of the shared container."""

    credential: Credential | None = None
    cached: CachedState | None = None
    last_sync_at: datetime | None = None
    thresholds: Thresholds | None = None
    theme: dict[str, str] | None = None  # Opaque to the sync core
    model_stats: list[ModelTokenStats] | None = None


def atomic_write_bytes(path: Path, content: bytes, mode: int = 0o600) -> None:
    """Write content to path atomically with restrictive permissions."""
    path.parent.mkdir(parents=True, exist_ok=True)

    # Unique temp file in the target directory so the rename stays atomic
    fd, temp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        temp_path.chmod(mode)
        temp_path.replace(path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def migrate_legacy_location(legacy_path: Path, current_path: Path) -> bool:
    """Copy the legacy shared file forward once, then drop the legacy directory.

    Never overwrites an existing current file and is a no-op once the
    legacy directory is gone, so it runs on every startup.

    Returns:
        True if a legacy directory was found and removed
    """
    if not legacy_path.exists():
        return False
    if legacy_path.parent.resolve() == current_path.parent.resolve():
        return False

    try:
        if not current_path.exists():
            atomic_write_bytes(current_path, legacy_path.read_bytes())
            logger.debug("Migrated shared state %s -> %s", legacy_path, current_path)
        shutil.rmtree(legacy_path.parent)
    except OSError as e:
        logger.warning("Shared state migration from %s failed: %s", legacy_path, e)
        return False

    return True


class SharedStateStore(ABC):
    """Durable, multi-reader store for the shared document.

    Subclasses provide whole-document load/save; every operation below is
    a read-modify-write of that document.
    """

    @abstractmethod
    def load(self) -> SharedDocument:
        """Return the current document (empty if absent or unreadable)."""
        ...

    @abstractmethod
    def save(self, document: SharedDocument) -> None:
        """Replace the document."""
        ...

    def _update(self, **changes) -> None:
        self.save(msgspec.structs.replace(self.load(), **changes))

    def read(self) -> CachedState | None:
        """Return the last good snapshot, if any."""
        return self.load().cached

    def write_snapshot(self, cached: CachedState) -> None:
        """Store a new snapshot and record the sync time."""
        self._update(cached=cached, last_sync_at=cached.fetched_at)

    def last_sync_at(self) -> datetime | None:
        return self.load().last_sync_at

    def read_credential(self) -> Credential | None:
        return self.load().credential

    def write_credential(self, credential: Credential | None) -> None:
        self._update(credential=credential)

    def is_configured(self) -> bool:
        """Check if a credential is stored."""
        return self.read_credential() is not None

    def read_settings(self) -> Thresholds:
        """Return display thresholds, defaults if none were written."""
        return self.load().thresholds or Thresholds()

    def read_theme(self) -> dict[str, str] | None:
        return self.load().theme

    def write_settings(
        self,
        thresholds: Thresholds,
        theme: dict[str, str] | None = None,
    ) -> None:
        """Store display settings; an omitted theme keeps the current one."""
        if theme is None:
            self._update(thresholds=thresholds)
        else:
            self._update(thresholds=thresholds, theme=theme)

    def read_model_stats(self) -> list[ModelTokenStats]:
        return self.load().model_stats or []

    def write_model_stats(self, stats: list[ModelTokenStats]) -> None:
        self._update(model_stats=stats)

    def clear(self) -> None:
        """Drop everything, including the credential (sign-out)."""
        self.save(SharedDocument())


class FileSharedStateStore(SharedStateStore):
    """Shared document stored as JSON under the application-support path."""

    def __init__(
        self,
        path: Path | None = None,
        legacy_path: Path | None = None,
        migrate: bool = True,
    ) -> None:
        self.path = path or shared_file()
        self.legacy_path = legacy_path or legacy_shared_file()
        if migrate:
            migrate_legacy_location(self.legacy_path, self.path)

    def load(self) -> SharedDocument:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return SharedDocument()
        except OSError as e:
            logger.warning("Cannot read shared state %s: %s", self.path, e)
            return SharedDocument()

        try:
            return msgspec.json.decode(data, type=SharedDocument)
        except msgspec.DecodeError as e:
            logger.warning("Shared state %s is unreadable (%s); ignoring", self.path, e)
            return SharedDocument()

    def save(self, document: SharedDocument) -> None:
        atomic_write_bytes(self.path, msgspec.json.encode(document))


class MemorySharedStateStore(SharedStateStore):
    """In-process store with the same semantics, for tests and embedding."""

    def __init__(self, document: SharedDocument | None = None) -> None:
        self._document = document or SharedDocument()

    def load(self) -> SharedDocument:
        return self._document

    def save(self, document: SharedDocument) -> None:
        self._document = document
