"""
Configuration management for zmusic.

This module loads player configuration from TOML files. The packaged
`defaults.toml` provides every value; a user file passed on the command line
only needs the keys it overrides.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

DEFAULT_CONFIG_PATH = CONFIG_DIR / "defaults.toml"

# Environment override for the catalog API base URL
API_URL_ENV = "ZMUSIC_API_URL"


@dataclass
class PlayerConfig:
    """Loaded player configuration."""

    api_base_url: str = "http://localhost:5000"
    request_timeout: float = 10.0
    request_retries: int = 2
    page_limit: int = 20
    default_volume: float = 0.7
    tick_interval: float = 0.25
    history_size: int = 5
    suggestion_limit: int = 8
    preferences_path: Path = Path("cache/zmusic-preferences.sqlite3")
    web_host: str = "127.0.0.1"
    web_port: int = 8765

    def __post_init__(self) -> None:
        """Validate ranges that would otherwise fail far from the config file."""
        if self.request_retries < 0:
            raise ValueError("api.retries must be non-negative")
        if self.request_timeout <= 0:
            raise ValueError("api.timeout must be positive")
        if self.tick_interval <= 0:
            raise ValueError("player.tick_interval must be positive")
        if self.history_size <= 0:
            raise ValueError("search.history_size must be positive")
        self.default_volume = max(0.0, min(1.0, float(self.default_volume)))


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge TOML tables one level deep (section by section)."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def _read_toml(path: Path) -> dict[str, Any]:
    logger.debug("Loading config from %s", path)
    with path.open("rb") as f:
        return tomllib.load(f)


def _parse_config(data: dict[str, Any]) -> PlayerConfig:
    api = data.get("api", {})
    player = data.get("player", {})
    search = data.get("search", {})
    storage = data.get("storage", {})
    web = data.get("web", {})

    return PlayerConfig(
        api_base_url=str(api.get("base_url", "http://localhost:5000")),
        request_timeout=float(api.get("timeout", 10.0)),
        request_retries=int(api.get("retries", 2)),
        page_limit=int(api.get("page_limit", 20)),
        default_volume=float(player.get("default_volume", 0.7)),
        tick_interval=float(player.get("tick_interval", 0.25)),
        history_size=int(search.get("history_size", 5)),
        suggestion_limit=int(search.get("suggestion_limit", 8)),
        preferences_path=Path(storage.get("preferences_path", "cache/zmusic-preferences.sqlite3")),
        web_host=str(web.get("host", "127.0.0.1")),
        web_port=int(web.get("port", 8765)),
    )


def load_config(config_path: Path | None = None) -> PlayerConfig:
    """
    Load player configuration.

    Args:
        config_path: Optional user TOML file layered over the packaged defaults.

    Returns:
        Loaded PlayerConfig instance.
    """
    data = _read_toml(DEFAULT_CONFIG_PATH)
    if config_path is not None:
        data = _merge(data, _read_toml(config_path))

    config = _parse_config(data)

    env_url = os.environ.get(API_URL_ENV)
    if env_url:
        logger.debug("Using %s=%s", API_URL_ENV, env_url)
        config.api_base_url = env_url

    return config


# Global singleton instance (lazy loaded)
_config: PlayerConfig | None = None


def get_config() -> PlayerConfig:
    """
    Get the global configuration (lazy loaded singleton).

    Returns:
        The PlayerConfig instance.
    """
    global _config

    if _config is None:
        _config = load_config()

    return _config


def reload_config(config_path: Path | None = None) -> PlayerConfig:
    """
    Force reload of the configuration.

    Returns:
        The newly loaded PlayerConfig instance.
    """
    global _config
    _config = load_config(config_path)
    return _config
