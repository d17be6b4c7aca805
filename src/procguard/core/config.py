"""Configuration loading and validation."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class SupervisorConfig(BaseSettings):
    """Tunables for process supervision."""
    default_timeout: float = 60.0
    default_grace_period: Optional[float] = None

    # Liveness poll step while waiting out a grace period
    poll_interval: float = 0.1

    # Small capacity throttles readers against a slow consumer
    event_channel_capacity: int = 2
    stream_channel_capacity: int = 512

    # Longest single output line before the reader reports a failure
    stream_limit: int = Field(default=64 * 1024)
    encoding: str = "utf-8"

    min_drain_timeout: float = 1.0
    reap_timeout: float = 5.0

    log_level: str = "INFO"

    class Config:
        env_prefix = "PROCGUARD_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("event_channel_capacity", "stream_channel_capacity", "stream_limit")
    @classmethod
    def validate_positive_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"capacity must be >= 1, got {v}")
        return v

    @field_validator("poll_interval", "default_timeout")
    @classmethod
    def validate_positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"interval must be > 0, got {v}")
        return v

    @field_validator("default_grace_period")
    @classmethod
    def validate_grace_period(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError(f"default_grace_period must be >= 0, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got '{v}'")
        return level


_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class _CacheEntry(NamedTuple):
    config: SupervisorConfig
    mtime: float


# Parsed configs keyed by resolved path, invalidated when the file's mtime moves
_config_cache: Dict[Path, _CacheEntry] = {}


def _read_yaml(config_path: Path) -> SupervisorConfig:
    """Parse and validate one config file, bypassing the cache."""
    raw = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping at the top level")
    return SupervisorConfig(**_expand_env_vars(raw))


def load_config(config_path: Path = Path("procguard.yaml")) -> SupervisorConfig:
    """Load supervisor configuration from a YAML file.

    ``${VAR}`` references in string values are replaced from the
    environment. A missing file yields the defaults (plus env overrides).
    Parsed files are cached until their mtime changes.
    """
    path = Path(config_path).resolve()
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(path, None)
        logger.warning(f"Config file not found: {config_path}. Using default configuration.")
        return SupervisorConfig()

    entry = _config_cache.get(path)
    if entry is None or entry.mtime != mtime:
        entry = _CacheEntry(_read_yaml(path), mtime)
        _config_cache[path] = entry
    return entry.config


def clear_config_cache() -> None:
    _config_cache.clear()


def _expand_env_vars(data: Any, where: str = "root") -> Any:
    """Substitute ``${VAR}`` references throughout nested config data.

    Unset variables are left as written and reported with the config path
    they appear at.
    """
    if isinstance(data, dict):
        return {
            key: _expand_env_vars(value, key if where == "root" else f"{where}.{key}")
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [_expand_env_vars(item, f"{where}[{i}]") for i, item in enumerate(data)]
    if not isinstance(data, str):
        return data

    def _substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        value = os.environ.get(name)
        if value is None:
            logger.warning(
                f"Environment variable '{name}' is not set (config path: {where}), "
                f"keeping '{match.group(0)}'"
            )
            return match.group(0)
        return value

    return _ENV_REF.sub(_substitute, data)
