"""Configuration structures and loading for tokeneater."""

import logging
import os
import tomllib
from pathlib import Path

import msgspec

from tokeneater.models import ProxyConfig
from tokeneater.models import Thresholds
from tokeneater.models import validate_thresholds

logger = logging.getLogger(__name__)

# Default values
DEFAULT_POLL_INTERVAL = 60.0
DEFAULT_TIMELINE_INTERVAL = 300.0
DEFAULT_STALE_AFTER = 120.0
DEFAULT_RELOAD_DEBOUNCE = 0.5
DEFAULT_TIMEOUT = 30.0
DEFAULT_SILENT_READ_TIMEOUT = 2.0


# Poll configuration
class PollConfig(msgspec.Struct):
    """Polling and freshness settings."""

    interval_seconds: float = DEFAULT_POLL_INTERVAL
    timeline_interval_seconds: float = DEFAULT_TIMELINE_INTERVAL
    stale_after_seconds: float = DEFAULT_STALE_AFTER
    reload_debounce_seconds: float = DEFAULT_RELOAD_DEBOUNCE
    timeout: float = DEFAULT_TIMEOUT
    silent_read_timeout: float = DEFAULT_SILENT_READ_TIMEOUT


# Main configuration
class Config(msgspec.Struct):
    """Main configuration structure."""

    proxy: ProxyConfig = msgspec.field(default_factory=ProxyConfig)
    thresholds: Thresholds = msgspec.field(default_factory=Thresholds)
    poll: PollConfig = msgspec.field(default_factory=PollConfig)

    def effective_thresholds(self) -> Thresholds:
        """Return thresholds, falling back to defaults when invalid."""
        errors = validate_thresholds(self.thresholds)
        if errors:
            logger.warning("Invalid thresholds (%s); using defaults", "; ".join(errors))
            return Thresholds()
        return self.thresholds


def _load_from_toml(path: Path) -> dict:
    """Load configuration from TOML file."""
    if not path.exists():
        return {}

    with path.open("rb") as f:
        return tomllib.load(f)


def _save_to_toml(data: dict, path: Path) -> None:
    """Save configuration to TOML file."""
    import tomli_w

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        tomli_w.dump(data, f)


def convert_config(data: dict) -> Config:
    """Convert raw dict to Config struct."""
    return msgspec.convert(data, type=Config)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config.

    TOKENEATER_POLL_INTERVAL: Poll interval in seconds
    TOKENEATER_PROXY: host:port of a SOCKS5 proxy (enables the proxy)
    TOKENEATER_WARNING_PERCENT / TOKENEATER_CRITICAL_PERCENT: Thresholds
    """
    if interval := os.environ.get("TOKENEATER_POLL_INTERVAL"):
        try:
            poll = msgspec.structs.replace(
                config.poll, interval_seconds=float(interval)
            )
            config = msgspec.structs.replace(config, poll=poll)
        except ValueError:
            logger.warning("Ignoring invalid TOKENEATER_POLL_INTERVAL=%r", interval)

    if proxy := os.environ.get("TOKENEATER_PROXY"):
        host, _, port = proxy.rpartition(":")
        if host and port.isdigit():
            config = msgspec.structs.replace(
                config, proxy=ProxyConfig(enabled=True, host=host, port=int(port))
            )
        else:
            logger.warning("Ignoring invalid TOKENEATER_PROXY=%r", proxy)

    thresholds = config.thresholds
    for env_var, field in (
        ("TOKENEATER_WARNING_PERCENT", "warning_percent"),
        ("TOKENEATER_CRITICAL_PERCENT", "critical_percent"),
    ):
        if value := os.environ.get(env_var):
            if value.isdigit():
                thresholds = msgspec.structs.replace(thresholds, **{field: int(value)})
            else:
                logger.warning("Ignoring invalid %s=%r", env_var, value)
    if thresholds != config.thresholds:
        config = msgspec.structs.replace(config, thresholds=thresholds)

    return config


# Config state storage
_config: Config | None = None


def get_config() -> Config:
    """Get the current configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from disk."""
    global _config
    _config = load_config()
    return _config


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file with defaults."""
    from .paths import config_file

    config_path = path or config_file()

    raw_data = _load_from_toml(config_path)
    if not raw_data:
        # Return default config
        config = Config()
    else:
        config = convert_config(raw_data)

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file."""
    from .paths import config_file

    config_path = path or config_file()

    # Convert to dict for TOML serialization
    data = msgspec.to_builtins(config)

    _save_to_toml(data, config_path)

    # Update singleton
    global _config
    _config = config
