"""Configuration and persisted state for tokeneater."""

from tokeneater.config.levels import (
    FileLevelStore,
    LevelStore,
    MemoryLevelStore,
)
from tokeneater.config.paths import (
    config_dir,
    config_file,
    legacy_shared_dir,
    levels_file,
    shared_dir,
    shared_file,
    state_dir,
)
from tokeneater.config.settings import (
    Config,
    PollConfig,
    get_config,
    load_config,
    reload_config,
    save_config,
)
from tokeneater.config.shared import (
    FileSharedStateStore,
    MemorySharedStateStore,
    SharedDocument,
    SharedStateStore,
    atomic_write_bytes,
    migrate_legacy_location,
)

__all__ = [
    # paths
    "config_dir",
    "config_file",
    "state_dir",
    "shared_dir",
    "shared_file",
    "legacy_shared_dir",
    "levels_file",
    # settings
    "Config",
    "PollConfig",
    "get_config",
    "load_config",
    "reload_config",
    "save_config",
    # shared state
    "SharedDocument",
    "SharedStateStore",
    "FileSharedStateStore",
    "MemorySharedStateStore",
    "atomic_write_bytes",
    "migrate_legacy_location",
    # notification levels
    "LevelStore",
    "FileLevelStore",
    "MemoryLevelStore",
]
