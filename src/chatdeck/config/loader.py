"""
Configuration loader for Chatdeck.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config (~/.chatdeck/config.yaml)
3. Profile config (~/.chatdeck/profiles/<name>.yaml)
4. Project config (./.chatdeck/project.yaml)
5. Environment variables (CHATDECK_*)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from chatdeck.config.merger import deep_merge, get_nested_value, set_nested_value
from chatdeck.config.schema import Config
from chatdeck.storage.paths import (
    find_project_config,
    get_global_config_path,
    get_profile_path,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHATDECK_"

# Variables consumed elsewhere, never mapped onto config keys
_RESERVED_ENV = {"CHATDECK_HOME", "CHATDECK_PROFILE"}

_ENV_REFERENCE_RE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary ({} for a missing or empty file).

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


def resolve_env_reference(value: str) -> str:
    """
    Resolve a ``${VAR_NAME}`` value from the environment.

    Values that are not a reference are returned unchanged; an unset
    variable resolves to "".
    """
    match = _ENV_REFERENCE_RE.match(value or "")
    if not match:
        return value
    return os.environ.get(match.group(1), "")


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    ``CHATDECK_<SECTION>_<KEY>=<value>`` sets ``<section>.<key>``; the key
    keeps its underscores, so ``CHATDECK_CHAT_PREVIEW_LENGTH=60`` sets
    ``chat.preview_length``.

    Args:
        config: Configuration dictionary to modify.

    Returns:
        Configuration with environment overrides applied.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue

        section, _, name = key[len(ENV_PREFIX) :].lower().partition("_")
        if not name:
            continue

        logger.debug(f"Config override from {key}")
        config = set_nested_value(config, f"{section}.{name}", _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to the appropriate type.

    Returns:
        Parsed value (bool, int, float, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    if re.match(r"^-?\d+$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    return value


def load_config(
    profile: str | None = None,
    project_path: Path | None = None,
    skip_project: bool = False,
    skip_env: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Loading order (later overrides earlier):
    1. Default values from Config model
    2. Global config (~/.chatdeck/config.yaml)
    3. Profile config (~/.chatdeck/profiles/<name>.yaml) if specified
    4. Project config (./.chatdeck/project.yaml) if found
    5. Environment variables (CHATDECK_*)

    Args:
        profile: Profile name to load. Can also be set via CHATDECK_PROFILE.
        project_path: Starting path to search for project config. Defaults to cwd.
        skip_project: Skip loading project configuration.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    config_dict = Config().model_dump(mode="json")

    global_path = get_global_config_path()
    if global_path.exists():
        config_dict = deep_merge(config_dict, load_yaml_file(global_path))

    profile_name = profile or os.environ.get("CHATDECK_PROFILE")
    if not profile_name:
        profile_name = get_nested_value(config_dict, "general.default_profile")

    if profile_name:
        profile_path = get_profile_path(profile_name)
        if profile_path.exists():
            config_dict = deep_merge(config_dict, load_yaml_file(profile_path))
        else:
            logger.warning(f"Profile '{profile_name}' not found at {profile_path}")

    if not skip_project:
        project_config_path = find_project_config(project_path)
        if project_config_path:
            config_dict = deep_merge(config_dict, load_yaml_file(project_config_path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except Exception as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def get_config_sources(profile: str | None = None) -> dict[str, Path | None]:
    """
    Get paths to all configuration sources that exist.

    Returns:
        Dictionary mapping source names to paths (None if not found).
    """
    global_path = get_global_config_path()
    project_path = find_project_config()

    profile_name = profile or os.environ.get("CHATDECK_PROFILE")
    if not profile_name and global_path.exists():
        profile_name = get_nested_value(load_yaml_file(global_path), "general.default_profile")

    profile_path = get_profile_path(profile_name) if profile_name else None

    return {
        "global": global_path if global_path.exists() else None,
        "profile": profile_path if profile_path and profile_path.exists() else None,
        "project": project_path,
    }


# Singleton for cached config
_cached_config: Config | None = None


def get_config(reload: bool = False, profile: str | None = None) -> Config:
    """
    Get the global configuration instance.

    Uses a cached instance. Use reload=True to force refresh.

    Args:
        reload: Force reload configuration from disk.
        profile: Profile to load when (re)loading.

    Returns:
        Config instance.
    """
    global _cached_config

    if _cached_config is None or reload:
        _cached_config = load_config(profile=profile)

    return _cached_config


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config
    _cached_config = None
