"""Platform-specific paths for tokeneater configuration and shared state."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir
from platformdirs import user_data_dir
from platformdirs import user_state_dir

PACKAGE_NAME = "tokeneater"

# Shared container directories; the name carries the layout version
SHARED_DIR_NAME = "com.tokeneater.shared"
LEGACY_SHARED_DIR_NAME = "com.claudeusagewidget.shared"
SHARED_FILE_NAME = "shared.json"


def _get_env_path(env_var: str, fallback: Path) -> Path:
    """Get path from environment variable or fallback."""
    if env_value := os.environ.get(env_var):
        return Path(env_value)
    return fallback


def config_dir() -> Path:
    """Get user config directory.

    Respects TOKENEATER_CONFIG_DIR environment variable.
    """
    base_dir = Path(user_config_dir(PACKAGE_NAME))
    return _get_env_path("TOKENEATER_CONFIG_DIR", base_dir)


def state_dir() -> Path:
    """Get process-local state directory (notification levels).

    Respects TOKENEATER_STATE_DIR environment variable.
    """
    base_dir = Path(user_state_dir(PACKAGE_NAME))
    return _get_env_path("TOKENEATER_STATE_DIR", base_dir)


def shared_dir() -> Path:
    """Get the cross-process shared container directory.

    Lives under the application-support location so sandboxed readers
    resolve the same path. Respects TOKENEATER_SHARED_DIR.
    """
    base_dir = Path(user_data_dir(SHARED_DIR_NAME, appauthor=False))
    return _get_env_path("TOKENEATER_SHARED_DIR", base_dir)


def legacy_shared_dir() -> Path:
    """Get the pre-rename shared container directory."""
    return Path(user_data_dir(LEGACY_SHARED_DIR_NAME, appauthor=False))


def shared_file() -> Path:
    """Get the shared JSON document path."""
    return shared_dir() / SHARED_FILE_NAME


def legacy_shared_file() -> Path:
    """Get the legacy shared JSON document path."""
    return legacy_shared_dir() / SHARED_FILE_NAME


def levels_file() -> Path:
    """Get the persisted notification level map."""
    return state_dir() / "notification-levels.json"


def config_file() -> Path:
    """Get main config.toml path."""
    return config_dir() / "config.toml"


def claude_credentials_file() -> Path:
    """Get the Claude CLI credential file."""
    return Path.home() / ".claude" / ".credentials.json"


def claude_json_file() -> Path:
    """Get the Claude CLI state file holding per-project model usage."""
    return Path.home() / ".claude.json"
