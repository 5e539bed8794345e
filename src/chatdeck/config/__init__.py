"""Configuration system for Chatdeck."""

from chatdeck.config.loader import (
    ConfigurationError,
    apply_env_overrides,
    clear_config_cache,
    get_config,
    get_config_sources,
    load_config,
    load_yaml_file,
    resolve_env_reference,
)
from chatdeck.config.merger import deep_merge, get_nested_value, set_nested_value
from chatdeck.config.schema import AccountConfig, ChatConfig, Config, GeneralConfig

__all__ = [
    # Schema
    "Config",
    "AccountConfig",
    "ChatConfig",
    "GeneralConfig",
    # Loader
    "ConfigurationError",
    "apply_env_overrides",
    "clear_config_cache",
    "get_config",
    "get_config_sources",
    "load_config",
    "load_yaml_file",
    "resolve_env_reference",
    # Merger
    "deep_merge",
    "get_nested_value",
    "set_nested_value",
]
