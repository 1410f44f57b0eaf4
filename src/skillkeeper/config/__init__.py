"""
Settings for skillkeeper.

Usage:
    from skillkeeper.config import get_settings

    settings = get_settings()
    print(settings.github.max_candidates)
"""

from skillkeeper.config.loader import (
    ConfigurationError,
    apply_env_overrides,
    clear_settings_cache,
    get_settings,
    load_settings,
    load_yaml_file,
    parse_value,
    save_yaml_file,
)
from skillkeeper.config.merger import deep_merge, get_nested_value, set_nested_value
from skillkeeper.config.schema import (
    GitHubConfig,
    LoggingConfig,
    ScanConfig,
    Settings,
    WatcherConfig,
)

__all__ = [
    # Loader
    "ConfigurationError",
    "apply_env_overrides",
    "clear_settings_cache",
    "get_settings",
    "load_settings",
    "load_yaml_file",
    "parse_value",
    "save_yaml_file",
    # Merger
    "deep_merge",
    "get_nested_value",
    "set_nested_value",
    # Schema
    "GitHubConfig",
    "LoggingConfig",
    "ScanConfig",
    "Settings",
    "WatcherConfig",
]
