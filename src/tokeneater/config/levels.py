"""Persisted notification levels per metric.

Process-local, not part of the shared container: each process that
notifies keeps its own record so a restart does not re-announce a level.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from pathlib import Path

import msgspec

from tokeneater.config.paths import levels_file
from tokeneater.config.shared import atomic_write_bytes
from tokeneater.models import UsageLevel

logger = logging.getLogger(__name__)


class LevelStore(ABC):
    """Last announced level per metric key."""

    @abstractmethod
    def get(self, metric: str) -> UsageLevel:
        """Return the last level, GREEN if never recorded."""
        ...

    @abstractmethod
    def set(self, metric: str, level: UsageLevel) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class FileLevelStore(LevelStore):
    """Levels stored as a small JSON map in the state directory."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or levels_file()

    def _load(self) -> dict[str, int]:
        if not self.path.exists():
            return {}

        try:
            return msgspec.json.decode(self.path.read_bytes(), type=dict[str, int])
        except (msgspec.DecodeError, OSError) as e:
            logger.warning("Notification levels %s unreadable (%s); resetting", self.path, e)
            return {}

    def get(self, metric: str) -> UsageLevel:
        raw = self._load().get(metric, UsageLevel.GREEN)
        try:
            return UsageLevel(raw)
        except ValueError:
            return UsageLevel.GREEN

    def set(self, metric: str, level: UsageLevel) -> None:
        levels = self._load()
        levels[metric] = int(level)
        atomic_write_bytes(self.path, msgspec.json.encode(levels), mode=0o644)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class MemoryLevelStore(LevelStore):
    """In-memory levels for tests and short-lived consumers."""

    def __init__(self, levels: dict[str, UsageLevel] | None = None) -> None:
        self.levels: dict[str, UsageLevel] = dict(levels or {})

    def get(self, metric: str) -> UsageLevel:
        return self.levels.get(metric, UsageLevel.GREEN)

    def set(self, metric: str, level: UsageLevel) -> None:
        self.levels[metric] = level

    def clear(self) -> None:
        self.levels.clear()
