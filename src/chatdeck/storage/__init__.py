"""Storage utilities for Chatdeck."""

from chatdeck.storage.paths import (
    expand_path,
    find_project_config,
    get_chatdeck_home,
    get_global_config_path,
    get_profile_path,
    get_profiles_dir,
    list_profiles,
)

__all__ = [
    "expand_path",
    "find_project_config",
    "get_chatdeck_home",
    "get_global_config_path",
    "get_profile_path",
    "get_profiles_dir",
    "list_profiles",
]
