# log_forensics/config.py
"""
Rule engine configuration.

Build-age tiers and catalog lookup settings. Values can be loaded from a
JSON file whose build-age keys are given in days.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any, Dict, Optional


class ConfigError(Exception):
    """Raised when a configuration file is unreadable or malformed."""


@dataclass(frozen=True)
class RuleConfig:
    old_build_age: timedelta = timedelta(days=30)
    very_old_build_age: timedelta = timedelta(days=60)
    ancient_build_age: timedelta = timedelta(days=180)
    prehistoric_build_age: timedelta = timedelta(days=365)
    catalog_cache_dir: Optional[str] = None
    catalog_timeout: float = 30.0


# JSON key → (dataclass field, is a build age in days)
_KEYS: Dict[str, tuple[str, bool]] = {
    "oldBuildAge": ("old_build_age", True),
    "veryOldBuildAge": ("very_old_build_age", True),
    "ancientBuildAge": ("ancient_build_age", True),
    "prehistoricBuildAge": ("prehistoric_build_age", True),
    "catalogCachePath": ("catalog_cache_dir", False),
    "catalogTimeout": ("catalog_timeout", False),
}


def config_from_mapping(data: Dict[str, Any], base: Optional[RuleConfig] = None) -> RuleConfig:
    """Overlay recognized keys from ``data`` onto ``base`` (defaults if omitted)."""
    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in _KEYS:
            raise ConfigError(f"Unknown configuration option: {key}")
        name, is_age = _KEYS[key]
        if is_age:
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"{key} must be a non-negative number of days")
            overrides[name] = timedelta(days=value)
        elif name == "catalog_timeout":
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{key} must be a positive number of seconds")
            overrides[name] = float(value)
        else:
            if not isinstance(value, str):
                raise ConfigError(f"{key} must be a string")
            overrides[name] = value

    config = replace(base or RuleConfig(), **overrides)
    ages = [
        config.old_build_age,
        config.very_old_build_age,
        config.ancient_build_age,
        config.prehistoric_build_age,
    ]
    if ages != sorted(ages):
        raise ConfigError("Build age thresholds must be ascending from old to prehistoric")
    return config


def load_config(path: str) -> RuleConfig:
    """Read a JSON configuration file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a JSON object")
    return config_from_mapping(data)
