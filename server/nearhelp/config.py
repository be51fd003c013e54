"""Server configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: NEARHELP_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class StorageConfig:
    backend: str = "memory"  # "memory" or "file"
    data_dir: str = "data/documents"
    history_dir: str = "data/location_history"


@dataclass
class MatchingConfig:
    nearby_radius_km: float = 5.0
    search_start_km: float = 2.0
    search_step_km: float = 1.0
    search_max_km: float = 10.0
    search_quorum: int = 3
    nearby_alerts_radius_km: float = 10.0
    help_radius_km: float = 2.0


@dataclass
class LimitsConfig:
    max_helpers: int = 10
    active_alerts_limit: int = 20
    active_window_seconds: float = 120.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "NEARHELP_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "NEARHELP_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "NEARHELP_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "NEARHELP_STORAGE_BACKEND": lambda v: setattr(config.storage, "backend", v),
        "NEARHELP_STORAGE_DATA_DIR": lambda v: setattr(config.storage, "data_dir", v),
        "NEARHELP_STORAGE_HISTORY_DIR": lambda v: setattr(config.storage, "history_dir", v),
        "NEARHELP_MATCHING_NEARBY_RADIUS_KM": lambda v: setattr(config.matching, "nearby_radius_km", float(v)),
        "NEARHELP_MATCHING_SEARCH_START_KM": lambda v: setattr(config.matching, "search_start_km", float(v)),
        "NEARHELP_MATCHING_SEARCH_STEP_KM": lambda v: setattr(config.matching, "search_step_km", float(v)),
        "NEARHELP_MATCHING_SEARCH_MAX_KM": lambda v: setattr(config.matching, "search_max_km", float(v)),
        "NEARHELP_MATCHING_SEARCH_QUORUM": lambda v: setattr(config.matching, "search_quorum", int(v)),
        "NEARHELP_MATCHING_HELP_RADIUS_KM": lambda v: setattr(config.matching, "help_radius_km", float(v)),
        "NEARHELP_LIMITS_MAX_HELPERS": lambda v: setattr(config.limits, "max_helpers", int(v)),
        "NEARHELP_LIMITS_ACTIVE_WINDOW": lambda v: setattr(config.limits, "active_window_seconds", float(v)),
        "NEARHELP_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "NEARHELP_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in fields(config):
            values = raw.get(section.name)
            if not isinstance(values, dict):
                continue
            target = getattr(config, section.name)
            for k, v in values.items():
                if hasattr(target, k):
                    setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
