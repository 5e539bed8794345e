"""
Path utilities for Chatdeck.

Provides consistent path resolution for configuration files and fixtures.
"""

import os
from pathlib import Path


def get_chatdeck_home() -> Path:
    """
    Get the Chatdeck home directory.

    Resolution order:
    1. CHATDECK_HOME environment variable
    2. Default: ~/.chatdeck

    Returns:
        Path to the Chatdeck home directory.
    """
    env_home = os.environ.get("CHATDECK_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".chatdeck"


def get_global_config_path() -> Path:
    """
    Get the path to the global configuration file.

    Returns:
        Path to ~/.chatdeck/config.yaml
    """
    return get_chatdeck_home() / "config.yaml"


def get_profiles_dir() -> Path:
    """Get the profiles directory (~/.chatdeck/profiles/)."""
    return get_chatdeck_home() / "profiles"


def get_profile_path(profile_name: str) -> Path:
    """
    Get the path to a specific profile configuration file.

    Args:
        profile_name: Name of the profile.

    Returns:
        Path to ~/.chatdeck/profiles/<name>.yaml
    """
    return get_profiles_dir() / f"{profile_name}.yaml"


def find_project_config(start_path: Path | None = None) -> Path | None:
    """
    Find the project configuration file by traversing up the directory tree.

    Looks for .chatdeck/project.yaml starting from the given path
    (or current directory) and moving up to the root.

    Args:
        start_path: Starting directory to search from. Defaults to cwd.

    Returns:
        Path to the project config if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    current = start_path
    while current != current.parent:
        project_config = current / ".chatdeck" / "project.yaml"
        if project_config.exists():
            return project_config
        current = current.parent

    # Check root as well
    project_config = current / ".chatdeck" / "project.yaml"
    if project_config.exists():
        return project_config

    return None


def expand_path(path: str | Path) -> Path:
    """
    Expand a path string, handling ~ and environment variables.

    Args:
        path: Path string or Path object.

    Returns:
        Expanded and resolved Path.
    """
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)
    return Path(path).expanduser().resolve()


def list_profiles() -> list[str]:
    """
    List all available profile names.

    Returns:
        List of profile names (without .yaml extension).
    """
    profiles_dir = get_profiles_dir()
    if not profiles_dir.exists():
        return []

    return sorted(
        p.stem for p in profiles_dir.glob("*.yaml") if p.is_file() and not p.name.startswith(".")
    )
