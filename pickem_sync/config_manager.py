"""
Configuration management system for the pick'em sync engine.

This module provides flexible configuration management with support for:
- Environment variables
- Configuration files (YAML/JSON)
- Configuration validation
- Hot-reloading
"""

import os
import json
import logging
import yaml
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
from pydantic import BaseModel, ValidationError, Field


logger = logging.getLogger(__name__)

ESPN_NFL_BASE_URL = "https://site.api.espn.com/apis/site/v2/sports/football/nfl"


@dataclass
class HttpConfig:
    """Outbound HTTP configuration for the upstream feed."""
    base_url: str = ESPN_NFL_BASE_URL
    timeout: float = 15.0
    max_connections: int = 10
    max_keepalive_connections: int = 5
    keepalive_expiry: float = 30.0
    verify_tls: bool = True


@dataclass
class RetrySettings:
    """Retry/backoff configuration."""
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0


@dataclass
class CacheConfig:
    """Response cache TTLs (seconds) and sweep behavior."""
    scoreboard_ttl: float = 300.0
    season_ttl: float = 3600.0
    schedule_ttl: float = 1800.0
    sweep_policy: str = "per_class"

    def __post_init__(self):
        if self.sweep_policy not in ("per_class", "shortest"):
            raise ValueError(f"Unknown cache sweep policy: {self.sweep_policy}")


@dataclass
class LifecycleConfig:
    """Connection lifecycle configuration."""
    cleanup_interval: float = 600.0


@dataclass
class SyncConfig:
    """Week iteration and pacing configuration."""
    regular_season_weeks: int = 18
    preseason_weeks: int = 4
    postseason_weeks: int = 5
    inter_week_delay: float = 0.25
    include_preseason: bool = True
    stale_threshold_minutes: float = 10.0


@dataclass
class TeamsConfig:
    """Team resolution configuration."""
    aliases: Dict[str, str] = field(default_factory=lambda: {"WSH": "WAS"})
    color_policy: str = "backfill"
    unknown_placeholder: str = "Unknown"

    def __post_init__(self):
        if self.color_policy not in ("backfill", "authoritative"):
            raise ValueError(f"Unknown team color policy: {self.color_policy}")


@dataclass
class ServiceConfig:
    """Service identity configuration."""
    version: str = "0.1.0"
    base_user_agent: str = field(init=False)

    def __post_init__(self):
        self.base_user_agent = f"Pickem-Sync/{self.version}"


class ConfigurationModel(BaseModel):
    """Pydantic model for configuration validation."""
    http: HttpConfig = Field(default_factory=HttpConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    teams: TeamsConfig = Field(default_factory=TeamsConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)

    model_config = {"arbitrary_types_allowed": True}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_aliases(value: str) -> Dict[str, str]:
    """Parse ``"WSH=WAS,JAC=JAX"`` into an alias mapping."""
    aliases = {}
    for pair in value.split(","):
        pair = pair.strip()
        if not pair:
            continue
        if "=" not in pair:
            raise ValueError(f"Alias '{pair}' must look like EXTERNAL=CANONICAL")
        external, canonical = pair.split("=", 1)
        aliases[external.strip().upper()] = canonical.strip().upper()
    return aliases


# PICKEM_SYNC_* variable -> (section, key, converter)
ENV_MAPPINGS = {
    'PICKEM_SYNC_ESPN_BASE_URL': ('http', 'base_url', str),
    'PICKEM_SYNC_HTTP_TIMEOUT': ('http', 'timeout', float),
    'PICKEM_SYNC_HTTP_MAX_CONNECTIONS': ('http', 'max_connections', int),
    'PICKEM_SYNC_HTTP_MAX_KEEPALIVE': ('http', 'max_keepalive_connections', int),
    'PICKEM_SYNC_HTTP_VERIFY_TLS': ('http', 'verify_tls', _parse_bool),

    'PICKEM_SYNC_MAX_ATTEMPTS': ('retry', 'max_attempts', int),
    'PICKEM_SYNC_RETRY_BASE_DELAY': ('retry', 'base_delay', float),
    'PICKEM_SYNC_RETRY_BACKOFF_FACTOR': ('retry', 'backoff_factor', float),
    'PICKEM_SYNC_RETRY_MAX_DELAY': ('retry', 'max_delay', float),

    'PICKEM_SYNC_CACHE_SCOREBOARD_TTL': ('cache', 'scoreboard_ttl', float),
    'PICKEM_SYNC_CACHE_SEASON_TTL': ('cache', 'season_ttl', float),
    'PICKEM_SYNC_CACHE_SCHEDULE_TTL': ('cache', 'schedule_ttl', float),
    'PICKEM_SYNC_CACHE_SWEEP_POLICY': ('cache', 'sweep_policy', str),

    'PICKEM_SYNC_CLEANUP_INTERVAL': ('lifecycle', 'cleanup_interval', float),

    'PICKEM_SYNC_REGULAR_SEASON_WEEKS': ('sync', 'regular_season_weeks', int),
    'PICKEM_SYNC_PRESEASON_WEEKS': ('sync', 'preseason_weeks', int),
    'PICKEM_SYNC_POSTSEASON_WEEKS': ('sync', 'postseason_weeks', int),
    'PICKEM_SYNC_INTER_WEEK_DELAY': ('sync', 'inter_week_delay', float),
    'PICKEM_SYNC_INCLUDE_PRESEASON': ('sync', 'include_preseason', _parse_bool),
    'PICKEM_SYNC_STALE_THRESHOLD_MINUTES': ('sync', 'stale_threshold_minutes', float),

    'PICKEM_SYNC_TEAM_ALIASES': ('teams', 'aliases', _parse_aliases),
    'PICKEM_SYNC_TEAM_COLOR_POLICY': ('teams', 'color_policy', str),

    'PICKEM_SYNC_VERSION': ('service', 'version', str),
}

_FILE_PARSERS = {
    '.yml': lambda f: yaml.safe_load(f) or {},
    '.yaml': lambda f: yaml.safe_load(f) or {},
    '.json': json.load,
}


class ConfigFileHandler(FileSystemEventHandler):
    """Reloads the owning ConfigManager when its file changes on disk."""

    def __init__(self, config_manager: 'ConfigManager'):
        super().__init__()
        self.config_manager = config_manager

    def on_modified(self, event):
        if event.is_directory or event.src_path != str(self.config_manager.config_file_path):
            return
        logger.info(f"Configuration file {event.src_path} changed, reloading")
        self.config_manager.reload_configuration()


class ConfigManager:
    """
    Sync engine settings, layered as defaults, then the config file, then
    PICKEM_SYNC_* environment variables, validated with pydantic.

    With hot reload on, edits to the file are picked up by the next sync run.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None, enable_hot_reload: bool = True):
        """
        Args:
            config_file: YAML or JSON settings file
            enable_hot_reload: Watch config_file and reload it when modified
        """
        self.config_file_path = Path(config_file) if config_file else None
        self.enable_hot_reload = enable_hot_reload
        self._config_lock = threading.RLock()
        self._observer = None
        self._config: Optional[ConfigurationModel] = None

        self.load_configuration()

        if enable_hot_reload and self._has_file():
            self._watch_file()

    def _has_file(self) -> bool:
        return self.config_file_path is not None and self.config_file_path.exists()

    def _watch_file(self):
        self.stop()
        self._observer = Observer()
        self._observer.schedule(ConfigFileHandler(self), str(self.config_file_path.parent), recursive=False)
        self._observer.start()

    def load_configuration(self):
        """Rebuild the validated configuration from file and environment."""
        with self._config_lock:
            raw = self._read_file() if self._has_file() else {}
            raw = self._apply_environment(raw)
            try:
                self._config = ConfigurationModel(**raw)
            except (ValidationError, ValueError, TypeError) as e:
                raise ValueError(f"Configuration validation failed: {e}")

    def _read_file(self) -> Dict[str, Any]:
        suffix = self.config_file_path.suffix.lower()
        parser = _FILE_PARSERS.get(suffix)
        if parser is None:
            raise ValueError(f"Unsupported configuration file format: {suffix}")
        try:
            with open(self.config_file_path, 'r') as f:
                return parser(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Could not read configuration file {self.config_file_path}: {e}")

    @staticmethod
    def _apply_environment(raw: Dict[str, Any]) -> Dict[str, Any]:
        for env_var, (section, key, convert) in ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                raw.setdefault(section, {})[key] = convert(value)
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid value for environment variable {env_var}: {value} ({e})")
        return raw

    def reload_configuration(self):
        """Reload, keeping the previous configuration if the new one is invalid."""
        try:
            self.load_configuration()
        except ValueError as e:
            logger.error(f"Failed to reload configuration: {e}")
            return
        logger.info("Configuration reloaded")

    @property
    def config(self) -> ConfigurationModel:
        with self._config_lock:
            if self._config is None:
                raise RuntimeError("Configuration not loaded")
            return self._config

    def get_user_agent(self) -> str:
        """Get the user agent string sent to the upstream feed."""
        return f"{self.config.service.base_user_agent} (NFL Schedule Sync)"

    def get_team_aliases(self) -> Dict[str, str]:
        """Get the external -> canonical team code alias table."""
        return {k.upper(): v.upper() for k, v in self.config.teams.aliases.items()}

    def get_cache_ttls(self) -> Dict[str, float]:
        """Get cache TTLs keyed by cache class."""
        cache = self.config.cache
        return {
            "scoreboard": cache.scoreboard_ttl,
            "season": cache.season_ttl,
            "schedule": cache.schedule_ttl,
        }

    def stop(self):
        """Stop watching the configuration file."""
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the process-default configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        config_paths = [
            Path("config.yml"),
            Path("config.yaml"),
            Path("config.json"),
            Path("/etc/pickem-sync/config.yml"),
            Path("/etc/pickem-sync/config.yaml"),
            Path("/etc/pickem-sync/config.json"),
        ]

        config_file = None
        for path in config_paths:
            if path.exists():
                config_file = path
                break

        _config_manager = ConfigManager(config_file)

    return _config_manager


def set_config_manager(config_manager: Optional[ConfigManager]):
    """Replace the process-default configuration manager instance."""
    global _config_manager
    if _config_manager:
        _config_manager.stop()
    _config_manager = config_manager
