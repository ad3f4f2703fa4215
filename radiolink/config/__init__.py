"""
Configuration management for RadioLink.

This module loads the application configuration from TOML files. The bundled
`radiolink.toml` holds every default; a user file only needs to contain the
keys it wants to change.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from radiolink.core import RadioLinkError

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

DEFAULT_CONFIG_FILE = CONFIG_DIR / "radiolink.toml"
DEFAULT_STATIONS_FILE = CONFIG_DIR / "stations.json"


class ConfigError(RadioLinkError):
    """Configuration file is missing or malformed."""

    pass


@dataclass
class ListenerConfig:
    """Player-mode command endpoint."""

    host: str = "0.0.0.0"
    port: int = 6435


@dataclass
class RemoteConfig:
    """Remote-mode client settings."""

    peer_address: str = ""
    timeout: float = 2.0
    poll_interval: float = 2.5


@dataclass
class ResolverConfig:
    """Stream URL resolver settings."""

    max_steps: int = 5
    header_timeout: float = 10.0
    max_playlist_bytes: int = 65536
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@dataclass
class PlaybackConfig:
    """External player process settings."""

    command: list[str] = field(
        default_factory=lambda: [
            "ffplay",
            "-nodisp",
            "-nostats",
            "-hide_banner",
            "-loglevel",
            "info",
            "{url}",
        ]
    )
    ready_marker: str = "Input #"
    load_timeout: float = 15.0


@dataclass
class WebConfig:
    """HTTP API settings."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class StorageConfig:
    """Where persisted state lives."""

    settings_db: str = "radiolink-settings.sqlite3"
    stations_file: str = ""

    @property
    def stations_path(self) -> Path:
        """Station list file, falling back to the bundled default."""
        if self.stations_file:
            return Path(self.stations_file)
        return DEFAULT_STATIONS_FILE


@dataclass
class AppConfig:
    """Loaded application configuration."""

    listener: ListenerConfig = field(default_factory=ListenerConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    web: WebConfig = field(default_factory=WebConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge two config dicts section by section (override wins per key)."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def _section(data: dict[str, Any], name: str, cls: type) -> Any:
    """Build a config dataclass from a TOML section, ignoring unknown keys."""
    raw = data.get(name, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")

    known = cls.__dataclass_fields__.keys()
    unknown = set(raw) - set(known)
    if unknown:
        logger.warning("Ignoring unknown keys in [%s]: %s", name, ", ".join(sorted(unknown)))

    try:
        return cls(**{k: v for k, v in raw.items() if k in known})
    except TypeError as e:
        raise ConfigError(f"Invalid [{name}] section: {e}") from e


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Load the application configuration.

    Args:
        config_path: Optional user TOML file. Its keys override the bundled
            defaults in `radiolink.toml`.

    Returns:
        Loaded AppConfig instance.

    Raises:
        ConfigError: If a file cannot be read or parsed.
    """
    logger.debug("Loading default config from %s", DEFAULT_CONFIG_FILE)
    data = _read_toml(DEFAULT_CONFIG_FILE)

    if config_path is not None:
        logger.info("Loading config overrides from %s", config_path)
        data = _merge(data, _read_toml(config_path))

    playback = _section(data, "playback", PlaybackConfig)
    if not any("{url}" in part for part in playback.command):
        # The player needs the stream URL somewhere on its command line.
        playback.command = [*playback.command, "{url}"]

    return AppConfig(
        listener=_section(data, "listener", ListenerConfig),
        remote=_section(data, "remote", RemoteConfig),
        resolver=_section(data, "resolver", ResolverConfig),
        playback=playback,
        web=_section(data, "web", WebConfig),
        storage=_section(data, "storage", StorageConfig),
    )


# Global singleton instance (lazy loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """
    Get the global configuration (lazy loaded singleton).

    Returns:
        The AppConfig instance.
    """
    global _config

    if _config is None:
        _config = load_config()

    return _config


def reload_config(config_path: Path | None = None) -> AppConfig:
    """
    Force reload of the configuration.

    Returns:
        The newly loaded AppConfig instance.
    """
    global _config
    _config = load_config(config_path)
    return _config
