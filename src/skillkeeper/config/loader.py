"""
Settings loader for skillkeeper.

Loads and merges settings from:
1. Default values
2. The settings file (<config home>/skillkeeper/settings.yaml)
3. Environment variables (SKILLKEEPER_*)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from skillkeeper.config.merger import deep_merge, set_nested_value
from skillkeeper.config.schema import Settings
from skillkeeper.storage.paths import get_settings_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "SKILLKEEPER_"

# Handled by storage path resolution, not by the settings schema.
_RESERVED_ENV = {"SKILLKEEPER_HOME"}


class ConfigurationError(Exception):
    """Raised when settings loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML settings file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed dictionary (empty if the file does not exist).

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return content


def save_yaml_file(path: Path, data: dict[str, Any]) -> None:
    """
    Save a settings dictionary to a YAML file.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    except OSError as e:
        raise ConfigurationError(f"Cannot write {path}: {e}") from e


def parse_value(value: str) -> Any:
    """
    Parse a textual setting value (environment or command line) to a type.

    Returns:
        int, float, bool, list (comma-separated) or the string itself.
    """
    if re.match(r"^-?\d+$", value):
        return int(value)
    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False
    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


def _env_key_path(name: str, template: dict[str, Any]) -> str | None:
    """
    Map an environment variable suffix to a dotted settings path.

    Underscores separate levels unless the joined words name a key at the
    current level, so ``GITHUB_MAX_CANDIDATES`` maps to
    ``github.max_candidates``.

    Args:
        name: Lower-cased variable name without the prefix.
        template: Settings dictionary used to look up known keys.

    Returns:
        Dotted key path, or None if it does not match any setting.
    """
    words = name.split("_")
    path: list[str] = []
    current: Any = template
    i = 0
    while i < len(words):
        if not isinstance(current, dict):
            return None
        for j in range(len(words), i, -1):
            key = "_".join(words[i:j])
            if key in current:
                path.append(key)
                current = current[key]
                i = j
                break
        else:
            return None
    return ".".join(path)


def apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """
    Apply SKILLKEEPER_* environment variables to a settings dictionary.

    ``SKILLKEEPER_GITHUB_TIMEOUT=10`` sets ``github.timeout``. Variables
    that do not name a known setting are ignored.

    Args:
        data: Settings dictionary to modify.

    Returns:
        Settings with environment overrides applied.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue

        key_path = _env_key_path(key[len(ENV_PREFIX) :].lower(), data)
        if key_path is None:
            logger.debug(f"Ignoring unknown setting variable {key}")
            continue

        data = set_nested_value(data, key_path, parse_value(value))

    return data


def load_settings(path: Path | None = None, skip_env: bool = False) -> Settings:
    """
    Load and merge settings from all sources.

    Args:
        path: Settings file (default: <config home>/skillkeeper/settings.yaml).
        skip_env: Skip environment variable overrides.

    Returns:
        Validated Settings object.

    Raises:
        ConfigurationError: If a source is unreadable or the result invalid.
    """
    data = Settings().model_dump()

    settings_path = path or get_settings_path()
    data = deep_merge(data, load_yaml_file(settings_path))

    if not skip_env:
        data = apply_env_overrides(data)

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Settings validation failed: {e}") from e


# Cached settings instance
_cached_settings: Settings | None = None


def get_settings(reload: bool = False) -> Settings:
    """
    Get the process-wide settings.

    Args:
        reload: Force reloading from disk and environment.

    Returns:
        Settings instance.
    """
    global _cached_settings

    if _cached_settings is None or reload:
        _cached_settings = load_settings()

    return _cached_settings


def clear_settings_cache() -> None:
    """Clear the cached settings."""
    global _cached_settings
    _cached_settings = None
